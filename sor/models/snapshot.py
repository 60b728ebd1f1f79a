"""Pydantic models for subgraph-style pool snapshots.

The snapshot format follows the Balancer subgraph pool query: numeric values
arrive as decimal strings, field names are camelCase.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from sor.models.pool import Pool, PoolToken
from sor.models.types import Address, PoolType, normalize_address

logger = structlog.get_logger()


class SubgraphToken(BaseModel):
    """Token entry of a subgraph pool."""

    address: Address
    balance: Decimal = Field(ge=0)
    decimals: int = Field(ge=0, le=18)
    weight: Decimal | None = Field(default=None, ge=0)

    model_config = {"populate_by_name": True}


class SubgraphPool(BaseModel):
    """Pool entry of a subgraph snapshot."""

    id: str
    address: Address
    pool_type: PoolType = Field(alias="poolType")
    swap_fee: Decimal = Field(alias="swapFee", ge=0, lt=1)
    total_shares: Decimal = Field(default=Decimal(0), alias="totalShares", ge=0)
    tokens: list[SubgraphToken]
    amp: Decimal | None = Field(default=None, gt=0)
    expiry_time: int | None = Field(default=None, alias="expiryTime")
    unit_seconds: int | None = Field(default=None, alias="unitSeconds", gt=0)
    principal_token: Address | None = Field(default=None, alias="principalToken")
    base_token: Address | None = Field(default=None, alias="baseToken")

    model_config = {"populate_by_name": True}

    def to_pool(self) -> Pool:
        """Convert to the immutable Pool used by the router."""
        return Pool(
            id=self.id,
            address=normalize_address(self.address),
            pool_type=self.pool_type,
            tokens=tuple(
                PoolToken(
                    address=normalize_address(token.address),
                    balance=token.balance,
                    decimals=token.decimals,
                    weight=token.weight,
                )
                for token in self.tokens
            ),
            swap_fee=self.swap_fee,
            total_shares=self.total_shares,
            amp=self.amp,
            expiry_time=self.expiry_time,
            unit_seconds=self.unit_seconds,
            principal_token=(
                normalize_address(self.principal_token) if self.principal_token else None
            ),
            base_token=normalize_address(self.base_token) if self.base_token else None,
        )


class PoolSnapshot(BaseModel):
    """Top-level snapshot document: {"pools": [...]}."""

    pools: list[dict[str, Any]]


def parse_pools(data: dict[str, Any] | list[dict[str, Any]]) -> list[Pool]:
    """Parse a snapshot into pools, skipping entries that fail validation.

    Args:
        data: Either a {"pools": [...]} document or the bare pool list

    Returns:
        Parsed pools in snapshot order

    Raises:
        pydantic.ValidationError: If the document itself is malformed
    """
    raw_pools = data if isinstance(data, list) else PoolSnapshot.model_validate(data).pools

    pools: list[Pool] = []
    for raw in raw_pools:
        try:
            subgraph_pool = SubgraphPool.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "snapshot_invalid_pool",
                pool_id=raw.get("id") if isinstance(raw, dict) else None,
                error_count=e.error_count(),
                error=str(e.errors()[0]["msg"]) if e.errors() else None,
            )
            continue
        pools.append(subgraph_pool.to_pool())

    logger.debug("snapshot_parsed", total=len(raw_pools), parsed=len(pools))
    return pools


__all__ = ["SubgraphToken", "SubgraphPool", "PoolSnapshot", "parse_pools"]
