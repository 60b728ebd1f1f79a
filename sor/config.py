"""Router configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sor.constants import (
    DEFAULT_MAX_POOLS,
    DEFAULT_MAX_POOLS_PER_HOP,
    DERIVATIVE_STEP,
    ENV_PREFIX,
    MAX_OPTIMIZER_ITERATIONS,
    PRICE_TOLERANCE,
)


@dataclass(frozen=True)
class RouterConfig:
    """Tunable parameters of the allocation optimizer and path builder.

    Attributes:
        max_iterations: Newton iteration cap per candidate path count; when
            exhausted the best allocation found is returned as approximate
        price_tolerance: Relative marginal-price spread at which the
            allocation is considered converged
        max_pools: Default cap on the number of paths in an allocation
        max_pools_per_hop: Pools kept per hop when building paths
        derivative_step: Finite-difference step, relative to the path limit
    """

    max_iterations: int = MAX_OPTIMIZER_ITERATIONS
    price_tolerance: Decimal = PRICE_TOLERANCE
    max_pools: int = DEFAULT_MAX_POOLS
    max_pools_per_hop: int = DEFAULT_MAX_POOLS_PER_HOP
    derivative_step: Decimal = DERIVATIVE_STEP

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.price_tolerance <= 0:
            raise ValueError(f"price_tolerance must be positive, got {self.price_tolerance}")
        if self.max_pools < 1:
            raise ValueError(f"max_pools must be at least 1, got {self.max_pools}")
        if self.max_pools_per_hop < 1:
            raise ValueError(f"max_pools_per_hop must be at least 1, got {self.max_pools_per_hop}")
        if not 0 < self.derivative_step < 1:
            raise ValueError(f"derivative_step must be in (0, 1), got {self.derivative_step}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RouterConfig:
        """Build a config from SOR_* environment variables.

        Reads SOR_MAX_ITERATIONS, SOR_PRICE_TOLERANCE, SOR_MAX_POOLS,
        SOR_MAX_POOLS_PER_HOP and SOR_DERIVATIVE_STEP; unset variables keep
        their defaults.

        Raises:
            ValueError: If a variable is set to an unparseable or invalid value
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw = env.get(ENV_PREFIX + name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError as err:
                raise ValueError(f"{ENV_PREFIX}{name} must be an integer: {raw!r}") from err

        def _decimal(name: str, default: Decimal) -> Decimal:
            raw = env.get(ENV_PREFIX + name)
            if raw is None:
                return default
            try:
                return Decimal(raw)
            except InvalidOperation as err:
                raise ValueError(f"{ENV_PREFIX}{name} must be a decimal: {raw!r}") from err

        return cls(
            max_iterations=_int("MAX_ITERATIONS", defaults.max_iterations),
            price_tolerance=_decimal("PRICE_TOLERANCE", defaults.price_tolerance),
            max_pools=_int("MAX_POOLS", defaults.max_pools),
            max_pools_per_hop=_int("MAX_POOLS_PER_HOP", defaults.max_pools_per_hop),
            derivative_step=_decimal("DERIVATIVE_STEP", defaults.derivative_step),
        )


# Default configuration instance
DEFAULT_ROUTER_CONFIG = RouterConfig()

__all__ = ["RouterConfig", "DEFAULT_ROUTER_CONFIG"]
