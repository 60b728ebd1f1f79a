"""Routing result models."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sor.models.types import SwapType


@dataclass(frozen=True)
class SwapLeg:
    """A single pool swap of the execution plan.

    Amounts are token units of the leg's own tokens. Legs of the same path
    share a path_index and are ordered by hop_index.
    """

    pool_id: str
    pool_address: str
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal
    path_index: int
    hop_index: int


@dataclass(frozen=True)
class SwapInfo:
    """Result of a routing request.

    Attributes:
        token_in: Input token address
        token_out: Output token address
        swap_type: Exact-in or exact-out
        swap_amount: Requested amount (input for exact-in, output for exact-out)
        return_amount: Total output for exact-in, total input for exact-out
        return_amount_considering_fees: return_amount net of per-path gas cost
        swaps: Ordered execution legs
        market_sp: Marginal price (tokenIn per tokenOut) after the trade
        effective_price: Total input divided by total output
        approximate: True if the optimizer hit its iteration cap
    """

    token_in: str
    token_out: str
    swap_type: SwapType
    swap_amount: Decimal
    return_amount: Decimal
    return_amount_considering_fees: Decimal
    swaps: tuple[SwapLeg, ...] = ()
    market_sp: Decimal = Decimal(0)
    effective_price: Decimal = Decimal(0)
    approximate: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.swaps

    @property
    def path_count(self) -> int:
        return len({leg.path_index for leg in self.swaps})
