"""Router error classes.

Every failure raised by the router derives from SorError. Curve errors are
local to a single path and cause that path to be excluded; route errors are
terminal for the request.
"""

from __future__ import annotations

from decimal import Decimal


class SorError(Exception):
    """Base error for all router operations."""

    pass


# =============================================================================
# Pool data
# =============================================================================


class ProjectionError(SorError):
    """Pool data is malformed or does not contain the requested tokens."""

    pass


# =============================================================================
# Curve math
# =============================================================================


class CurveError(SorError):
    """A curve cannot price the requested trade."""

    pass


class InsufficientLiquidityError(CurveError):
    """Requested amount exceeds what a single curve can produce."""

    pass


class MaxInRatioError(InsufficientLiquidityError):
    """Input amount exceeds 30% of balance_in."""

    pass


class MaxOutRatioError(InsufficientLiquidityError):
    """Output amount exceeds 30% of balance_out."""

    pass


class InvalidFeeError(CurveError):
    """Swap fee must be in range [0, 1)."""

    pass


class InvalidScalingFactorError(CurveError):
    """Scaling factor must be positive."""

    pass


class ZeroWeightError(CurveError):
    """Token weight must be positive."""

    pass


class ZeroBalanceError(CurveError):
    """Token balance must be positive for swaps."""

    pass


class StableInvariantDidNotConverge(CurveError):
    """Newton-Raphson iteration for the stable invariant D did not converge."""

    pass


class StableGetBalanceDidNotConverge(CurveError):
    """Newton-Raphson iteration for a stable balance did not converge."""

    pass


class MaturityOutOfRangeError(CurveError):
    """Time to expiry is at least one full unit of the pool's time scale."""

    pass


# =============================================================================
# Routing
# =============================================================================


class RouteError(SorError):
    """Base error for request-level routing failures."""

    pass


class NoPathError(RouteError):
    """No path connects token_in to token_out."""

    pass


class RouteInsufficientLiquidityError(RouteError):
    """Aggregate limit of all candidate paths is below the requested amount.

    Attributes:
        max_amount: Largest amount the candidate paths can absorb, in the
            request's amount token, or None when it could not be computed.
    """

    def __init__(self, message: str, max_amount: Decimal | None = None) -> None:
        super().__init__(message)
        self.max_amount = max_amount


__all__ = [
    "SorError",
    "ProjectionError",
    "CurveError",
    "InsufficientLiquidityError",
    "MaxInRatioError",
    "MaxOutRatioError",
    "InvalidFeeError",
    "InvalidScalingFactorError",
    "ZeroWeightError",
    "ZeroBalanceError",
    "StableInvariantDidNotConverge",
    "StableGetBalanceDidNotConverge",
    "MaturityOutOfRangeError",
    "RouteError",
    "NoPathError",
    "RouteInsufficientLiquidityError",
]
