"""Convergent curve of principal/base token pools (Element-style).

The invariant is x^a + y^a = k with a = 1 - t and t the time to maturity in
units of the pool's unit_seconds. Principal token reserves are virtually
augmented by the pool's share supply. As t goes to zero the curve flattens
to a 1:1 line; once matured it stays there.

The time function is pluggable: make_convergent_curve(time_to_maturity=...)
builds a capability table over any mapping from pair data to t.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from sor.curves.base import CurveMath, fixed_fraction_limit
from sor.errors import InsufficientLiquidityError, MaturityOutOfRangeError, ZeroBalanceError
from sor.math.decimal_utils import decimal_div, decimal_pow
from sor.math.fixed_point import MAX_IN_RATIO, MAX_OUT_RATIO, ONE_18, Bfp
from sor.models.types import SwapType
from sor.pairs import PoolPairData

TimeToMaturityFn = Callable[[PoolPairData], Decimal]


def linear_time_to_maturity(pair: PoolPairData) -> Decimal:
    """max(expiry - now, 0) / unit_seconds."""
    if pair.expiry_time is None or not pair.unit_seconds:
        raise MaturityOutOfRangeError(f"Pool {pair.pool_id}: missing expiry parameters")
    remaining = max(pair.expiry_time - pair.current_block_timestamp, 0)
    return decimal_div(Decimal(remaining), Decimal(pair.unit_seconds))


def _exponent(t: Decimal, pool_id: str) -> Bfp:
    """a = 1 - t as fixed point.

    Raises:
        MaturityOutOfRangeError: If t >= 1 (too far from expiry to trade)
    """
    if t >= 1:
        raise MaturityOutOfRangeError(
            f"Pool {pool_id}: time to maturity {t} is at least one unit"
        )
    a = Bfp.from_decimal_down(max(t, Decimal(0))).complement()
    if a.is_zero():
        raise MaturityOutOfRangeError(f"Pool {pool_id}: curve exponent rounds to zero")
    return a


def _reserves(pair: PoolPairData) -> tuple[Bfp, Bfp]:
    x = pair.balance_in.add(pair.total_shares) if pair.principal_in else pair.balance_in
    y = pair.balance_out.add(pair.total_shares) if pair.principal_out else pair.balance_out
    if x.is_zero() or y.is_zero():
        raise ZeroBalanceError(f"Pool {pair.pool_id}: zero reserve")
    return x, y


def _yield_fee(amount_in: Bfp, amount_out: Bfp, swap_fee: Decimal) -> Bfp:
    """Fee charged on the implied yield |out - in|."""
    if amount_out >= amount_in:
        implied_yield = amount_out.sub(amount_in)
    else:
        implied_yield = amount_in.sub(amount_out)
    return implied_yield.mul_up(Bfp.from_decimal(swap_fee))


def calc_out_given_in(x: Bfp, y: Bfp, a: Bfp, amount_in: Bfp) -> Bfp:
    """y - (x^a + y^a - (x + in)^a)^(1/a), rounded so the output is small.

    Raises:
        InsufficientLiquidityError: If the input exhausts the curve
    """
    if a.value == ONE_18:
        return amount_in
    k = x.pow_up(a).add(y.pow_up(a))
    x_after = x.add(amount_in).pow_down(a)
    if x_after >= k:
        raise InsufficientLiquidityError(f"Input {amount_in.value} exhausts the curve")
    y_after = k.sub(x_after).pow_up(Bfp(ONE_18).div_up(a))
    return y.sub(y_after)


def calc_in_given_out(x: Bfp, y: Bfp, a: Bfp, amount_out: Bfp) -> Bfp:
    """(x^a + y^a - (y - out)^a)^(1/a) - x, rounded so the input is large.

    Raises:
        InsufficientLiquidityError: If amount_out >= y
    """
    if amount_out >= y:
        raise InsufficientLiquidityError(f"Output {amount_out.value} exceeds reserve {y.value}")
    if a.value == ONE_18:
        return amount_out
    k = x.pow_up(a).add(y.pow_up(a))
    y_after = y.sub(amount_out).pow_down(a)
    x_after = k.sub(y_after).pow_up(Bfp(ONE_18).div_up(a))
    return x_after.sub(x)


def make_convergent_curve(
    time_to_maturity: TimeToMaturityFn = linear_time_to_maturity,
) -> CurveMath:
    """Build the capability table for a given time function."""

    def spot_price(pair: PoolPairData) -> Decimal:
        t = time_to_maturity(pair)
        _exponent(t, pair.pool_id)
        x, y = _reserves(pair)
        rate = decimal_pow(decimal_div(y.to_decimal(), x.to_decimal()), t)
        net_rate = rate - abs(rate - 1) * pair.swap_fee
        return decimal_div(Decimal(1), net_rate)

    def out_given_in(pair: PoolPairData, amount_in: Bfp) -> Bfp:
        a = _exponent(time_to_maturity(pair), pair.pool_id)
        x, y = _reserves(pair)
        amount_out = calc_out_given_in(x, y, a, amount_in)
        amount_out = amount_out.sub(_yield_fee(amount_in, amount_out, pair.swap_fee))
        if amount_out >= pair.balance_out:
            raise InsufficientLiquidityError(
                f"Pool {pair.pool_id}: output {amount_out.value} exceeds balance"
            )
        return amount_out

    def in_given_out(pair: PoolPairData, amount_out: Bfp) -> Bfp:
        if amount_out >= pair.balance_out:
            raise InsufficientLiquidityError(
                f"Pool {pair.pool_id}: output {amount_out.value} exceeds balance"
            )
        a = _exponent(time_to_maturity(pair), pair.pool_id)
        x, y = _reserves(pair)
        amount_in = calc_in_given_out(x, y, a, amount_out)
        return amount_in.add(_yield_fee(amount_in, amount_out, pair.swap_fee))

    def limit_amount(pair: PoolPairData, swap_type: SwapType) -> Bfp:
        if swap_type == SwapType.EXACT_OUT:
            return pair.balance_out.mul_down(MAX_OUT_RATIO)
        t = time_to_maturity(pair)
        if t <= 0:
            # 1:1 once matured, so the output side bounds the input too
            return min(
                pair.balance_in.mul_down(MAX_IN_RATIO), pair.balance_out.mul_down(MAX_OUT_RATIO)
            )
        return in_given_out(pair, fixed_fraction_limit(pair, SwapType.EXACT_OUT))

    def normalized_liquidity(pair: PoolPairData) -> Decimal:
        return pair.balance_out.to_decimal()

    return CurveMath(
        spot_price=spot_price,
        calc_out_given_in=out_given_in,
        calc_in_given_out=in_given_out,
        limit_amount=limit_amount,
        normalized_liquidity=normalized_liquidity,
    )


CONVERGENT_CURVE = make_convergent_curve()

__all__ = [
    "TimeToMaturityFn",
    "linear_time_to_maturity",
    "calc_out_given_in",
    "calc_in_given_out",
    "make_convergent_curve",
    "CONVERGENT_CURVE",
]
