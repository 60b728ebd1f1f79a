"""Scaling and fee helpers.

Functions for scaling token amounts between native decimals and 18-decimal
fixed-point, and for applying swap fees.
"""

from __future__ import annotations

from decimal import Decimal

from sor.errors import InvalidFeeError, InvalidScalingFactorError
from sor.math.fixed_point import Bfp


def scale_up(amount: int, scaling_factor: int) -> Bfp:
    """Scale a raw token amount to 18 decimals.

    Args:
        amount: Amount in token's native decimals
        scaling_factor: Factor to scale by (e.g., 10^12 for 6-decimal tokens)

    Raises:
        InvalidScalingFactorError: If scaling_factor <= 0
    """
    if scaling_factor <= 0:
        raise InvalidScalingFactorError(f"Scaling factor must be positive, got {scaling_factor}")
    return Bfp(amount * scaling_factor)


def scale_down_down(bfp: Bfp, scaling_factor: int) -> int:
    """Scale an 18-decimal amount back to token decimals, rounding down."""
    if scaling_factor <= 0:
        raise InvalidScalingFactorError(f"Scaling factor must be positive, got {scaling_factor}")
    return bfp.value // scaling_factor


def scale_down_up(bfp: Bfp, scaling_factor: int) -> int:
    """Scale an 18-decimal amount back to token decimals, rounding up."""
    if scaling_factor <= 0:
        raise InvalidScalingFactorError(f"Scaling factor must be positive, got {scaling_factor}")
    if bfp.value == 0:
        return 0
    return (bfp.value - 1) // scaling_factor + 1


def truncate_down(bfp: Bfp, scaling_factor: int) -> Bfp:
    """Drop the digits an 18-decimal amount cannot carry in token decimals."""
    return scale_up(scale_down_down(bfp, scaling_factor), scaling_factor)


def truncate_up(bfp: Bfp, scaling_factor: int) -> Bfp:
    """Round an 18-decimal amount up to the token's precision."""
    return scale_up(scale_down_up(bfp, scaling_factor), scaling_factor)


def _check_fee(swap_fee: Decimal) -> None:
    if swap_fee < 0 or swap_fee >= 1:
        raise InvalidFeeError(f"Swap fee must be in range [0, 1), got {swap_fee}")


def subtract_swap_fee_amount(amount: Bfp, swap_fee: Decimal) -> Bfp:
    """Subtract the swap fee from an input amount (exact input).

    Raises:
        InvalidFeeError: If swap_fee is not in range [0, 1)
    """
    _check_fee(swap_fee)
    fee_amount = amount.mul_up(Bfp.from_decimal(swap_fee))
    return amount.sub(fee_amount)


def add_swap_fee_amount(amount: Bfp, swap_fee: Decimal) -> Bfp:
    """Gross up a fee-less input amount (exact output).

    Formula: amount_with_fee = amount / (1 - fee)

    Raises:
        InvalidFeeError: If swap_fee is not in range [0, 1)
    """
    _check_fee(swap_fee)
    return amount.div_up(Bfp.from_decimal(swap_fee).complement())
