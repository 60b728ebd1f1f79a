"""Pool, snapshot and result models."""

from sor.models.pool import Pool, PoolToken
from sor.models.snapshot import PoolSnapshot, SubgraphPool, SubgraphToken, parse_pools
from sor.models.swap_info import SwapInfo, SwapLeg
from sor.models.types import Address, PoolFilter, PoolType, SwapType, normalize_address

__all__ = [
    # Types
    "Address",
    "PoolType",
    "SwapType",
    "PoolFilter",
    "normalize_address",
    # Pools
    "Pool",
    "PoolToken",
    # Snapshot parsing
    "PoolSnapshot",
    "SubgraphPool",
    "SubgraphToken",
    "parse_pools",
    # Results
    "SwapInfo",
    "SwapLeg",
]
