"""Weighted product pool curve.

Core math functions for weighted product pools, plus the pair-level
capability table used by the router.
"""

from __future__ import annotations

from decimal import Decimal

from sor.curves.base import CurveMath, fixed_fraction_limit
from sor.curves.scaling import add_swap_fee_amount, subtract_swap_fee_amount
from sor.errors import MaxInRatioError, MaxOutRatioError, ZeroBalanceError, ZeroWeightError
from sor.math.decimal_utils import decimal_div
from sor.math.fixed_point import MAX_IN_RATIO, MAX_OUT_RATIO, ONE_18, Bfp
from sor.pairs import PoolPairData


def _validate(balance_in: Bfp, weight_in: Bfp, balance_out: Bfp, weight_out: Bfp) -> None:
    if weight_in.value <= 0:
        raise ZeroWeightError("weight_in must be positive")
    if weight_out.value <= 0:
        raise ZeroWeightError("weight_out must be positive")
    if balance_in.value <= 0:
        raise ZeroBalanceError("balance_in must be positive")
    if balance_out.value <= 0:
        raise ZeroBalanceError("balance_out must be positive")


def calc_out_given_in(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    amount_in: Bfp,
) -> Bfp:
    """Calculate output amount for a given input.

    Fee should be subtracted from amount_in BEFORE calling this function.

    Formula:
        amount_out = balance_out * (1 - (balance_in / (balance_in + amount_in))^(weight_in / weight_out))

    Raises:
        MaxInRatioError: If amount_in > balance_in * 0.3 (30% limit)
        ZeroWeightError: If weight_in or weight_out is zero
        ZeroBalanceError: If balance_in or balance_out is zero
    """
    _validate(balance_in, weight_in, balance_out, weight_out)

    max_amount_in = balance_in.mul_down(MAX_IN_RATIO)
    if amount_in.value > max_amount_in.value:
        raise MaxInRatioError(f"Input {amount_in.value} exceeds 30% of balance {balance_in.value}")

    denominator = balance_in.add(amount_in)
    base = balance_in.div_up(denominator)
    exponent = weight_in.div_down(weight_out)
    power = base.pow_up(exponent)

    return balance_out.mul_down(power.complement())


def calc_in_given_out(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    amount_out: Bfp,
) -> Bfp:
    """Calculate input amount for a given output.

    Fee should be added to the result AFTER calling this function.

    Formula:
        amount_in = balance_in * ((balance_out / (balance_out - amount_out))^(weight_out / weight_in) - 1)

    Raises:
        MaxOutRatioError: If amount_out > balance_out * 0.3 (30% limit)
        ZeroWeightError: If weight_in or weight_out is zero
        ZeroBalanceError: If a balance is zero or amount_out >= balance_out
    """
    _validate(balance_in, weight_in, balance_out, weight_out)

    max_amount_out = balance_out.mul_down(MAX_OUT_RATIO)
    if amount_out.value > max_amount_out.value:
        raise MaxOutRatioError(
            f"Output {amount_out.value} exceeds 30% of balance {balance_out.value}"
        )
    if amount_out.value >= balance_out.value:
        raise ZeroBalanceError("amount_out must be less than balance_out")

    base = balance_out.div_up(balance_out.sub(amount_out))
    # Rounded up for exact-out, unlike calc_out_given_in
    exponent = weight_out.div_up(weight_in)
    power = base.pow_up(exponent)

    ratio = power.sub(Bfp(ONE_18))
    return balance_in.mul_up(ratio)


# =============================================================================
# Pair-level capabilities
# =============================================================================


def _weights(pair: PoolPairData) -> tuple[Bfp, Bfp]:
    if pair.weight_in is None or pair.weight_out is None:
        raise ZeroWeightError(f"Pool {pair.pool_id}: missing weights")
    return pair.weight_in, pair.weight_out


def weighted_spot_price(pair: PoolPairData) -> Decimal:
    """(balance_in / weight_in) / (balance_out / weight_out) / (1 - fee)."""
    weight_in, weight_out = _weights(pair)
    _validate(pair.balance_in, weight_in, pair.balance_out, weight_out)
    numerator = decimal_div(pair.balance_in.to_decimal(), weight_in.to_decimal())
    denominator = decimal_div(pair.balance_out.to_decimal(), weight_out.to_decimal())
    return decimal_div(decimal_div(numerator, denominator), 1 - pair.swap_fee)


def weighted_out_given_in(pair: PoolPairData, amount_in: Bfp) -> Bfp:
    weight_in, weight_out = _weights(pair)
    amount_in_after_fee = subtract_swap_fee_amount(amount_in, pair.swap_fee)
    return calc_out_given_in(
        balance_in=pair.balance_in,
        weight_in=weight_in,
        balance_out=pair.balance_out,
        weight_out=weight_out,
        amount_in=amount_in_after_fee,
    )


def weighted_in_given_out(pair: PoolPairData, amount_out: Bfp) -> Bfp:
    weight_in, weight_out = _weights(pair)
    amount_in = calc_in_given_out(
        balance_in=pair.balance_in,
        weight_in=weight_in,
        balance_out=pair.balance_out,
        weight_out=weight_out,
        amount_out=amount_out,
    )
    return add_swap_fee_amount(amount_in, pair.swap_fee)


def weighted_normalized_liquidity(pair: PoolPairData) -> Decimal:
    """balance_out * weight_in / (weight_in + weight_out)."""
    weight_in, weight_out = _weights(pair)
    total = weight_in.to_decimal() + weight_out.to_decimal()
    return decimal_div(pair.balance_out.to_decimal() * weight_in.to_decimal(), total)


WEIGHTED_CURVE = CurveMath(
    spot_price=weighted_spot_price,
    calc_out_given_in=weighted_out_given_in,
    calc_in_given_out=weighted_in_given_out,
    limit_amount=fixed_fraction_limit,
    normalized_liquidity=weighted_normalized_liquidity,
)

__all__ = [
    "calc_out_given_in",
    "calc_in_given_out",
    "weighted_spot_price",
    "weighted_normalized_liquidity",
    "WEIGHTED_CURVE",
]
