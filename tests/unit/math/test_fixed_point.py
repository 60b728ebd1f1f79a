"""Tests for 18-decimal fixed-point arithmetic and the Decimal helpers."""

from decimal import Decimal

import pytest

from sor.errors import CurveError
from sor.math.decimal_utils import decimal_div, decimal_pow, from_raw, to_raw
from sor.math.fixed_point import ONE_18, Bfp, InvalidExponent, exp, pow_raw

# pow is accurate to about 1e-14 relative; compare within 5e-14
POW_TOLERANCE = 5 * 10**4


class TestBfpConversions:
    """Decimal <-> Bfp conversions."""

    def test_from_decimal(self):
        assert Bfp.from_decimal(Decimal("1.5")).value == 15 * 10**17

    def test_from_decimal_rounds_half_up(self):
        assert Bfp.from_decimal(Decimal("0.0000000000000000005")).value == 1

    def test_from_decimal_down_truncates(self):
        assert Bfp.from_decimal_down(Decimal("0.0000000000000000009")).value == 0
        assert Bfp.from_decimal_down(Decimal("2.0000000000000000019")).value == 2 * ONE_18 + 1

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            Bfp.from_decimal(Decimal("-1"))
        with pytest.raises(ValueError):
            Bfp.from_decimal_down(Decimal("-0.1"))

    def test_to_decimal(self):
        assert Bfp(1_500_000_000_000_000_000).to_decimal() == Decimal("1.5")
        assert Bfp(1).to_decimal() == Decimal("1e-18")

    def test_from_int(self):
        assert Bfp.from_int(7).value == 7 * ONE_18

    def test_large_balance_keeps_precision(self):
        """Balances beyond the default 28-digit context survive the round trip."""
        balance = Decimal("123456789012345.123456789012345678")
        assert Bfp.from_decimal(balance).to_decimal() == balance


class TestBfpArithmetic:
    """Rounding direction of the basic operations."""

    def test_mul_down_and_up(self):
        a = Bfp(ONE_18 + 1)
        assert a.mul_down(a).value == ONE_18 + 2
        assert a.mul_up(a).value == ONE_18 + 3

    def test_mul_up_zero(self):
        assert Bfp(0).mul_up(Bfp.from_int(5)).value == 0

    def test_div_down_and_up(self):
        one, three = Bfp.from_int(1), Bfp.from_int(3)
        assert one.div_down(three).value == 333_333_333_333_333_333
        assert one.div_up(three).value == 333_333_333_333_333_334

    def test_division_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            Bfp.from_int(1).div_down(Bfp(0))
        with pytest.raises(ZeroDivisionError):
            Bfp.from_int(1).div_up(Bfp(0))

    def test_complement_clamps(self):
        assert Bfp(3 * 10**17).complement().value == 7 * 10**17
        assert Bfp(2 * ONE_18).complement().value == 0

    def test_sub_clamps(self):
        assert Bfp.from_int(5).sub(Bfp.from_int(3)).value == 2 * ONE_18
        assert Bfp.from_int(3).sub(Bfp.from_int(5)).value == 0

    def test_comparisons(self):
        assert Bfp(1) < Bfp(2)
        assert Bfp(2) >= Bfp(2)
        assert Bfp(3) == Bfp(3)
        assert Bfp(1) != 1

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Bfp(1))


class TestLogExpMath:
    """ln/exp/pow routines."""

    def test_exp_zero(self):
        assert exp(0) == ONE_18

    def test_exp_out_of_range(self):
        with pytest.raises(InvalidExponent):
            exp(131 * ONE_18)

    def test_invalid_exponent_is_curve_error(self):
        assert issubclass(InvalidExponent, CurveError)

    def test_pow_trivial_cases(self):
        assert pow_raw(5 * ONE_18, 0) == ONE_18
        assert pow_raw(0, ONE_18) == 0

    def test_pow_identity(self):
        assert abs(pow_raw(2 * ONE_18, ONE_18) - 2 * ONE_18) <= POW_TOLERANCE

    def test_pow_square_root(self):
        assert abs(pow_raw(4 * ONE_18, ONE_18 // 2) - 2 * ONE_18) <= POW_TOLERANCE

    def test_pow_near_one(self):
        """Bases in (0.9, 1.1) use the 36-decimal logarithm."""
        x = ONE_18 + 10**16  # 1.01
        assert abs(pow_raw(x, 2 * ONE_18) - 1_020_100_000_000_000_000) <= POW_TOLERANCE

    def test_pow_up_above_pow_down(self):
        base, exponent = Bfp(15 * 10**17), Bfp(78 * 10**16)
        assert base.pow_up(exponent) > base.pow_down(exponent)


class TestDecimalUtils:
    """High-precision Decimal helpers."""

    def test_decimal_div_high_precision(self):
        third = decimal_div(Decimal(1), Decimal(3))
        assert len(str(third)) > 70

    def test_decimal_pow(self):
        assert decimal_pow(Decimal(4), Decimal("0.5")) == Decimal(2)

    def test_to_raw_rounds_down(self):
        assert to_raw(Decimal("1.0000009"), 6) == 1_000_000
        assert to_raw(Decimal("2.5"), 18) == 25 * 10**17

    def test_from_raw(self):
        assert from_raw(1_500_000, 6) == Decimal("1.5")
        assert from_raw(0, 18) == 0
