"""Smart order router for weighted, stable and convergent (principal/base) pools."""

from sor.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from sor.errors import (
    CurveError,
    InsufficientLiquidityError,
    NoPathError,
    ProjectionError,
    RouteError,
    RouteInsufficientLiquidityError,
    SorError,
)
from sor.models import Pool, PoolFilter, PoolToken, PoolType, SwapInfo, SwapLeg, SwapType
from sor.pairs import PoolPairData, project_pair
from sor.provider import JsonPoolDataProvider, PoolDataProvider, StaticPoolDataProvider
from sor.routing import SmartOrderRouter, SwapOptions

__version__ = "0.1.0"

__all__ = [
    # Router
    "SmartOrderRouter",
    "SwapOptions",
    "RouterConfig",
    "DEFAULT_ROUTER_CONFIG",
    # Providers
    "PoolDataProvider",
    "StaticPoolDataProvider",
    "JsonPoolDataProvider",
    # Models
    "Pool",
    "PoolToken",
    "PoolType",
    "PoolFilter",
    "SwapType",
    "SwapInfo",
    "SwapLeg",
    "PoolPairData",
    "project_pair",
    # Errors
    "SorError",
    "ProjectionError",
    "CurveError",
    "InsufficientLiquidityError",
    "RouteError",
    "NoPathError",
    "RouteInsufficientLiquidityError",
]
