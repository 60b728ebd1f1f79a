"""Shared type definitions for pool and swap models."""

from enum import Enum
from typing import Annotated

from pydantic import Field

# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]


class PoolType(str, Enum):
    """Curve family of a pool; selects the curve math implementation."""

    WEIGHTED = "Weighted"
    STABLE = "Stable"
    ELEMENT = "Element"


class SwapType(str, Enum):
    """Whether the request fixes the input or the output amount."""

    EXACT_IN = "swapExactIn"
    EXACT_OUT = "swapExactOut"


class PoolFilter(str, Enum):
    """Request-level restriction on the pool types used for routing."""

    ALL = "All"
    WEIGHTED = "Weighted"
    STABLE = "Stable"
    ELEMENT = "Element"

    def accepts(self, pool_type: PoolType) -> bool:
        return self is PoolFilter.ALL or self.value == pool_type.value


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to lowercase with a 0x prefix."""
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    return addr
