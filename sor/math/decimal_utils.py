"""Shared high-precision Decimal utilities for price calculations.

Prices are ratios of 18-decimal balances raised to fractional powers; the
default 28-digit context loses the low digits that finite differences rely on.
"""

from __future__ import annotations

import decimal
from decimal import Decimal

# 78 digits of precision, enough for uint256 values (up to ~10^77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)


def decimal_div(a: Decimal, b: Decimal) -> Decimal:
    """Divide a by b with high precision."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return a / b


def decimal_pow(base: Decimal, exponent: Decimal) -> Decimal:
    """Raise a positive base to a fractional exponent with high precision."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return base**exponent


def to_raw(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to its integer representation, rounding down."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return int((amount * (Decimal(10) ** decimals)).to_integral_value(decimal.ROUND_DOWN))


def from_raw(raw: int, decimals: int) -> Decimal:
    """Convert an integer token amount to a Decimal token amount."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return Decimal(raw) / (Decimal(10) ** decimals)


__all__ = [
    "DECIMAL_HIGH_PREC_CONTEXT",
    "decimal_div",
    "decimal_pow",
    "to_raw",
    "from_raw",
]
