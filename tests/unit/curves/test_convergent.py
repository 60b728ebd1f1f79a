"""Tests for the convergent (principal/base) curve.

The default pool trades BASE_TOKEN against PRINCIPAL_TOKEN with 1000 of each,
1000 total shares, a 10% yield fee and unit_seconds = 1000, so t = 0.01 ten
seconds before expiry.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from sor.curves.convergent import (
    CONVERGENT_CURVE,
    calc_in_given_out,
    calc_out_given_in,
    linear_time_to_maturity,
    make_convergent_curve,
)
from sor.errors import InsufficientLiquidityError, MaturityOutOfRangeError
from sor.math.decimal_utils import decimal_div
from sor.math.fixed_point import Bfp
from sor.models import SwapType
from sor.pairs import project_pair
from tests.helpers import (
    BASE_TOKEN,
    ELEMENT_EXPIRY,
    ELEMENT_UNIT_SECONDS,
    PRINCIPAL_TOKEN,
    make_element_pool,
)

ONE = Bfp.from_int(1)


class TestTimeToMaturity:
    """Linear time function."""

    def test_before_expiry(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        assert linear_time_to_maturity(pair) == Decimal("0.1")

    def test_after_expiry_is_zero(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY + 5)
        assert linear_time_to_maturity(pair) == 0

    def test_missing_expiry(self, element_pair_factory):
        pair = replace(element_pair_factory(ELEMENT_EXPIRY), expiry_time=None)
        with pytest.raises(MaturityOutOfRangeError):
            linear_time_to_maturity(pair)


class TestRawMath:
    """Invariant math on reserves, before the yield fee."""

    def test_linear_when_exponent_is_one(self):
        amount = Bfp.from_int(7)
        assert calc_out_given_in(Bfp.from_int(10), Bfp.from_int(20), ONE, amount) == amount
        assert calc_in_given_out(Bfp.from_int(10), Bfp.from_int(20), ONE, amount) == amount

    def test_symmetric_reserves_lose_to_curvature(self):
        a = Bfp(9 * 10**17)
        out = calc_out_given_in(Bfp.from_int(1000), Bfp.from_int(1000), a, Bfp.from_int(10))
        assert out < Bfp.from_int(10)

    def test_in_given_out_exceeding_reserve(self):
        a = Bfp(9 * 10**17)
        with pytest.raises(InsufficientLiquidityError):
            calc_in_given_out(Bfp.from_int(1000), Bfp.from_int(100), a, Bfp.from_int(100))


class TestSpotPrice:
    """Spot price in tokenIn per tokenOut."""

    def test_matured_price_is_one(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY + 22)
        assert CONVERGENT_CURVE.spot_price(pair) == 1

    def test_principal_trades_at_discount_before_expiry(self, element_pair_factory):
        buy_principal = element_pair_factory(ELEMENT_EXPIRY - 100)
        sell_principal = element_pair_factory(ELEMENT_EXPIRY - 100, reverse=True)
        assert CONVERGENT_CURVE.spot_price(buy_principal) < 1
        assert CONVERGENT_CURVE.spot_price(sell_principal) > 1

    def test_small_trade_matches_spot_price(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        amount_in = Bfp.from_decimal(Decimal("0.01"))
        amount_out = CONVERGENT_CURVE.swap_exact_in(pair, amount_in)
        effective = decimal_div(amount_in.to_decimal(), amount_out.to_decimal())
        spot = CONVERGENT_CURVE.spot_price(pair)
        assert abs(effective - spot) / spot < Decimal("1e-4")

    @pytest.mark.parametrize("offset", [ELEMENT_UNIT_SECONDS, 5 * ELEMENT_UNIT_SECONDS])
    def test_too_far_from_expiry(self, element_pair_factory, offset):
        pair = element_pair_factory(ELEMENT_EXPIRY - offset)
        with pytest.raises(MaturityOutOfRangeError):
            CONVERGENT_CURVE.spot_price(pair)
        with pytest.raises(MaturityOutOfRangeError):
            CONVERGENT_CURVE.swap_exact_in(pair, ONE)


class TestSwaps:
    """Pair-level swaps with the yield fee."""

    def test_matured_swaps_are_one_to_one(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY + 22)
        amount = Bfp.from_decimal(Decimal("12.5"))
        assert CONVERGENT_CURVE.swap_exact_in(pair, amount) == amount
        assert CONVERGENT_CURVE.swap_exact_out(pair, amount) == amount

    def test_buying_principal_yields_more_than_input(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 22)
        assert CONVERGENT_CURVE.swap_exact_in(pair, ONE) > ONE

    def test_selling_principal_yields_less_than_input(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 22, reverse=True)
        assert CONVERGENT_CURVE.swap_exact_in(pair, ONE) < ONE

    def test_yield_fee_reduces_output(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        no_fee = replace(pair, swap_fee=Decimal(0))
        assert CONVERGENT_CURVE.swap_exact_in(pair, ONE) < CONVERGENT_CURVE.swap_exact_in(
            no_fee, ONE
        )

    def test_exact_out_covers_request(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        amount_out = Bfp.from_int(50)
        amount_in = CONVERGENT_CURVE.swap_exact_out(pair, amount_out)
        assert CONVERGENT_CURVE.swap_exact_in(pair, amount_in) >= amount_out

    def test_exact_out_beyond_balance(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        with pytest.raises(InsufficientLiquidityError):
            CONVERGENT_CURVE.swap_exact_out(pair, Bfp.from_int(1000))


class TestLimits:
    """Limit amounts across expiry."""

    @pytest.mark.parametrize("offset", [-500, -10, 1, 22])
    def test_exact_out_limit_is_fixed_fraction(self, element_pair_factory, offset):
        pair = element_pair_factory(ELEMENT_EXPIRY + offset)
        assert CONVERGENT_CURVE.limit_amount(pair, SwapType.EXACT_OUT) == Bfp.from_int(300)

    def test_exact_in_limit_after_expiry(self, element_pair_factory):
        pair = element_pair_factory(ELEMENT_EXPIRY + 1)
        assert CONVERGENT_CURVE.limit_amount(pair, SwapType.EXACT_IN) == Bfp.from_int(300)

    def test_exact_in_limit_changes_across_expiry(self, element_pair_factory):
        before = CONVERGENT_CURVE.limit_amount(
            element_pair_factory(ELEMENT_EXPIRY - 10), SwapType.EXACT_IN
        )
        after = CONVERGENT_CURVE.limit_amount(
            element_pair_factory(ELEMENT_EXPIRY + 1), SwapType.EXACT_IN
        )
        assert before.value > 0
        assert after.value > 0
        assert before != after

    def test_exact_in_limit_is_tradable(self, element_pair_factory):
        """Before expiry the exact-in limit is the input that buys 30% of balance_out."""
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        limit = CONVERGENT_CURVE.limit_amount(pair, SwapType.EXACT_IN)
        out = CONVERGENT_CURVE.swap_exact_in(pair, limit)
        assert Bfp.from_int(290) < out < pair.balance_out

    def test_exact_in_limit_after_expiry_bound_by_output_side(self):
        pool = make_element_pool(base_balance="1000", principal_balance="100")
        pair = project_pair(pool, BASE_TOKEN, PRINCIPAL_TOKEN, ELEMENT_EXPIRY + 1)
        limit = CONVERGENT_CURVE.limit_amount(pair, SwapType.EXACT_IN)
        assert limit == Bfp.from_int(30)
        assert CONVERGENT_CURVE.swap_exact_in(pair, limit) == Bfp.from_int(30)


class TestPluggableTime:
    """make_convergent_curve with a custom time function."""

    def test_constant_matured_time(self, element_pair_factory):
        curve = make_convergent_curve(time_to_maturity=lambda pair: Decimal(0))
        pair = element_pair_factory(ELEMENT_EXPIRY - 100)
        assert curve.swap_exact_in(pair, ONE) == ONE
        assert curve.spot_price(pair) == 1

    def test_custom_time_scale(self, element_pair_factory):
        curve = make_convergent_curve(time_to_maturity=lambda pair: Decimal("0.5"))
        pair = element_pair_factory(ELEMENT_EXPIRY + 100)
        assert curve.swap_exact_in(pair, ONE) > ONE
