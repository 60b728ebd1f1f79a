"""Curve capability table.

Every pool type supplies the same set of pure functions over PoolPairData.
The generic capabilities (zero handling, exact-out forward verification,
post-trade spot price and its finite-difference derivative) are built on top
of the type-specific ones here, once for all pool types.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

import structlog

from sor.constants import CONVERGE_IN_MAX_BUMPS, DERIVATIVE_STEP
from sor.errors import CurveError, InsufficientLiquidityError
from sor.math.decimal_utils import decimal_div
from sor.math.fixed_point import MAX_IN_RATIO, MAX_OUT_RATIO, Bfp
from sor.models.types import SwapType
from sor.pairs import PoolPairData

logger = structlog.get_logger()

SpotPriceFn = Callable[[PoolPairData], Decimal]
SwapFn = Callable[[PoolPairData, Bfp], Bfp]
LimitFn = Callable[[PoolPairData, SwapType], Bfp]
LiquidityFn = Callable[[PoolPairData], Decimal]


# =============================================================================
# Forward Verification
# =============================================================================


def converge_in_amount(
    in_amount: Bfp,
    exact_out_amount: Bfp,
    get_amount_out: Callable[[Bfp], Bfp],
) -> Bfp:
    """Bump an input amount until selling it yields at least exact_out_amount.

    Computing the input needed to buy X and then selling that input in the
    same state can yield X minus a few wei because of rounding. The deficit is
    converted to input at the current trading price and multiplied by 10 on
    each retry.

    If the forward simulation itself is not defined at in_amount (for
    instance the 30% input ratio check fires) the computed input is kept.

    Raises:
        CurveError: If no bump within CONVERGE_IN_MAX_BUMPS tries is enough
    """
    try:
        out_amount = get_amount_out(in_amount)
    except CurveError:
        return in_amount
    if out_amount >= exact_out_amount:
        return in_amount

    deficit = exact_out_amount.value - out_amount.value
    divisor = max(out_amount.value, 1)
    bump = max(1, (deficit * in_amount.value + divisor - 1) // divisor)

    for _ in range(CONVERGE_IN_MAX_BUMPS):
        bumped = Bfp(in_amount.value + bump)
        out_amount = get_amount_out(bumped)
        if out_amount >= exact_out_amount:
            return bumped
        bump *= 10

    logger.debug(
        "converge_in_amount_failed",
        in_amount=in_amount.value,
        exact_out_amount=exact_out_amount.value,
    )
    raise CurveError("Exact-out input did not converge under forward simulation")


def fixed_fraction_limit(pair: PoolPairData, swap_type: SwapType) -> Bfp:
    """30% of balance_in for exact-in, 30% of balance_out for exact-out."""
    if swap_type == SwapType.EXACT_IN:
        return pair.balance_in.mul_down(MAX_IN_RATIO)
    return pair.balance_out.mul_down(MAX_OUT_RATIO)


def finite_difference(
    price_at: Callable[[Bfp], Decimal], amount: Bfp, step: Bfp, limit: Bfp
) -> Decimal:
    """Slope of price_at around amount.

    A backward difference is used when the forward point would cross limit.
    """
    if step.is_zero():
        step = Bfp(1)
    if amount.add(step) <= limit or amount < step:
        lower, upper = amount, amount.add(step)
    else:
        lower, upper = amount.sub(step), amount
    return decimal_div(price_at(upper) - price_at(lower), step.to_decimal())


# =============================================================================
# Capability table
# =============================================================================


@dataclass(frozen=True)
class CurveMath:
    """Capability set of one curve family.

    Attributes:
        spot_price: tokenIn per tokenOut at zero size, fee included
        calc_out_given_in: Output for a gross input (amount > 0)
        calc_in_given_out: Gross input for an output (0 < amount < balance_out)
        limit_amount: Largest safe trade size for a swap type
        normalized_liquidity: Liquidity proxy used to rank pools
    """

    spot_price: SpotPriceFn
    calc_out_given_in: SwapFn
    calc_in_given_out: SwapFn
    limit_amount: LimitFn
    normalized_liquidity: LiquidityFn

    def swap_exact_in(self, pair: PoolPairData, amount_in: Bfp) -> Bfp:
        if amount_in.is_zero():
            return Bfp(0)
        return self.calc_out_given_in(pair, amount_in)

    def swap_exact_out(self, pair: PoolPairData, amount_out: Bfp) -> Bfp:
        """Input required to buy amount_out, verified by forward simulation.

        Raises:
            InsufficientLiquidityError: If amount_out >= balance_out
        """
        if amount_out.is_zero():
            return Bfp(0)
        if amount_out >= pair.balance_out:
            raise InsufficientLiquidityError(
                f"Pool {pair.pool_id}: amount_out {amount_out.value} >= "
                f"balance_out {pair.balance_out.value}"
            )
        amount_in = self.calc_in_given_out(pair, amount_out)
        return converge_in_amount(
            amount_in, amount_out, lambda a: self.calc_out_given_in(pair, a)
        )

    def successor(self, pair: PoolPairData, amount: Bfp, swap_type: SwapType) -> PoolPairData:
        """Pair data after trading amount (input for exact-in, output for exact-out)."""
        if swap_type == SwapType.EXACT_IN:
            return pair.after_swap(amount, self.swap_exact_in(pair, amount))
        return pair.after_swap(self.swap_exact_out(pair, amount), amount)

    def spot_price_after(self, pair: PoolPairData, amount_in: Bfp, amount_out: Bfp) -> Decimal:
        """Spot price once a trade of known amounts has been applied."""
        return self.spot_price(pair.after_swap(amount_in, amount_out))

    def spot_price_after_swap(
        self, pair: PoolPairData, amount: Bfp, swap_type: SwapType
    ) -> Decimal:
        if amount.is_zero():
            return self.spot_price(pair)
        return self.spot_price(self.successor(pair, amount, swap_type))

    def derivative_price(
        self,
        pair: PoolPairData,
        amount: Bfp,
        swap_type: SwapType,
        step: Bfp | None = None,
    ) -> Decimal:
        """Finite-difference derivative of spot_price_after_swap.

        The step defaults to DERIVATIVE_STEP times the limit amount.
        """
        limit = self.limit_amount(pair, swap_type)
        if step is None:
            step = Bfp.from_decimal_down(limit.to_decimal() * DERIVATIVE_STEP)
        return finite_difference(
            lambda a: self.spot_price_after_swap(pair, a, swap_type), amount, step, limit
        )


__all__ = ["CurveMath", "converge_in_amount", "finite_difference", "fixed_fraction_limit"]
