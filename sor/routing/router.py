"""Smart order router facade.

Entry point for routing requests: pulls the pool snapshot from a provider,
filters it, builds candidate paths, optimizes the split and assembles the
SwapInfo.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog

from sor.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from sor.errors import NoPathError
from sor.models.swap_info import SwapInfo
from sor.models.types import PoolFilter, SwapType, normalize_address
from sor.provider import PoolDataProvider
from sor.routing.assembler import assemble_swap_info, empty_swap_info
from sor.routing.optimizer import optimize
from sor.routing.paths import build_paths

logger = structlog.get_logger()


@dataclass(frozen=True)
class SwapOptions:
    """Per-request routing options.

    Attributes:
        timestamp: Block timestamp the request is priced at
        max_pools: Cap on the number of paths; None uses the router config
        pool_type_filter: Pool types allowed in the route
        gas_price_per_path: Cost of each used path, in the return token
            (token_out for exact-in, token_in for exact-out)
    """

    timestamp: int
    max_pools: int | None = None
    pool_type_filter: PoolFilter = PoolFilter.ALL
    gas_price_per_path: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        if self.max_pools is not None and self.max_pools < 1:
            raise ValueError(f"max_pools must be at least 1, got {self.max_pools}")
        if self.gas_price_per_path < 0:
            raise ValueError(
                f"gas_price_per_path must be non-negative, got {self.gas_price_per_path}"
            )


class SmartOrderRouter:
    """Routes swap requests across the pools of a provider.

    Args:
        provider: Source of the pool snapshot, queried once per request
        config: Optimizer and path builder configuration
    """

    def __init__(
        self,
        provider: PoolDataProvider,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    ) -> None:
        self.provider = provider
        self.config = config

    def get_swaps(
        self,
        token_in: str,
        token_out: str,
        swap_type: SwapType,
        amount: Decimal,
        options: SwapOptions,
    ) -> SwapInfo:
        """Compute the best split of a swap request.

        Args:
            token_in: Input token address
            token_out: Output token address
            swap_type: Exact-in (amount is input) or exact-out (amount is output)
            amount: Requested amount in token units
            options: Request options

        Returns:
            SwapInfo; empty when amount is zero

        Raises:
            ValueError: If amount is negative
            NoPathError: If no path connects the tokens
            RouteInsufficientLiquidityError: If the paths cannot absorb amount
        """
        token_in = normalize_address(token_in)
        token_out = normalize_address(token_out)
        if amount < 0:
            raise ValueError(f"Swap amount must be non-negative, got {amount}")
        if token_in == token_out:
            raise NoPathError(f"token_in and token_out are both {token_in}")
        if amount == 0:
            return empty_swap_info(token_in, token_out, swap_type)

        pools = [
            pool
            for pool in self.provider.get_pools()
            if options.pool_type_filter.accepts(pool.pool_type)
        ]
        paths = build_paths(
            pools, token_in, token_out, self.config.max_pools_per_hop, options.timestamp
        )
        if not paths:
            raise NoPathError(f"No path from {token_in} to {token_out}")

        allocation = optimize(
            paths,
            swap_type,
            amount,
            options.gas_price_per_path,
            self.config,
            timestamp=options.timestamp,
            max_pools=options.max_pools,
        )
        swap_info = assemble_swap_info(
            token_in, token_out, allocation, options.gas_price_per_path
        )

        logger.info(
            "swap_routed",
            token_in=token_in,
            token_out=token_out,
            swap_type=swap_type.value,
            swap_amount=str(swap_info.swap_amount),
            return_amount=str(swap_info.return_amount),
            paths=swap_info.path_count,
            approximate=swap_info.approximate,
        )
        return swap_info


__all__ = ["SwapOptions", "SmartOrderRouter"]
