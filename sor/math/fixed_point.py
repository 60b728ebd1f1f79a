"""18-decimal fixed-point arithmetic (Balancer "Bfp").

Values are plain integers scaled by 10^18. The ln/exp/pow routines follow
Balancer V2's LogExpMath.sol so that rounding behaviour (and therefore the
monotonicity and clamping behaviour of every curve built on top) matches the
on-chain pools:
https://github.com/balancer-labs/balancer-v2-monorepo/blob/master/pkg/solidity-utils/contracts/math/LogExpMath.sol
"""

from __future__ import annotations

import decimal
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import ClassVar

from sor.errors import CurveError
from sor.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT

__all__ = [
    "Bfp",
    "LogExpMathError",
    "XOutOfBounds",
    "YOutOfBounds",
    "ProductOutOfBounds",
    "InvalidExponent",
    "pow_raw",
    "exp",
    "ONE_18",
    "ONE_20",
    "ONE_36",
    "MAX_IN_RATIO",
    "MAX_OUT_RATIO",
    "AMP_PRECISION",
]

ONE_18 = 10**18
ONE_20 = 10**20
ONE_36 = 10**36

MAX_NATURAL_EXPONENT = 130 * ONE_18
MIN_NATURAL_EXPONENT = -41 * ONE_18

# ln is evaluated with 36 decimals of precision inside (0.9, 1.1)
LN_36_LOWER_BOUND = ONE_18 - 10**17
LN_36_UPPER_BOUND = ONE_18 + 10**17

MILD_EXPONENT_BOUND = (1 << 254) // ONE_20

# Digit-extraction tables: x_n are powers of two, a_n = e^(x_n)
_X0 = 128 * ONE_18
_A0 = 38877084059945950922200000000000000000000000000000000000
_X1 = 64 * ONE_18
_A1 = 6235149080811616882910000000

# 20-decimal table, largest first
_TABLE_20: tuple[tuple[int, int], ...] = (
    (3_200_000_000_000_000_000_000, 7_896_296_018_268_069_516_100_000_000_000_000),
    (1_600_000_000_000_000_000_000, 888_611_052_050_787_263_676_000_000),
    (800_000_000_000_000_000_000, 298_095_798_704_172_827_474_000),
    (400_000_000_000_000_000_000, 5_459_815_003_314_423_907_810),
    (200_000_000_000_000_000_000, 738_905_609_893_065_022_723),
    (100_000_000_000_000_000_000, 271_828_182_845_904_523_536),
    (50_000_000_000_000_000_000, 164_872_127_070_012_814_685),
    (25_000_000_000_000_000_000, 128_402_541_668_774_148_407),
    (12_500_000_000_000_000_000, 113_314_845_306_682_631_683),
    (6_250_000_000_000_000_000, 106_449_445_891_785_942_956),
)


class LogExpMathError(CurveError):
    """Base error for LogExpMath operations."""

    pass


class XOutOfBounds(LogExpMathError):
    """Base x is out of valid range."""

    pass


class YOutOfBounds(LogExpMathError):
    """Exponent y exceeds MILD_EXPONENT_BOUND."""

    pass


class ProductOutOfBounds(LogExpMathError):
    """y * ln(x) is outside the valid range for exp."""

    pass


class InvalidExponent(LogExpMathError):
    """Exponent is outside [MIN_NATURAL_EXPONENT, MAX_NATURAL_EXPONENT]."""

    pass


def _div_trunc(a: int, b: int) -> int:
    """Integer division truncating toward zero, like Solidity."""
    if b == 0:
        raise ZeroDivisionError("Division by zero in _div_trunc")
    if (a >= 0) == (b >= 0):
        return a // b
    return -(abs(a) // abs(b))


def _ln(a: int) -> int:
    """Natural logarithm of an 18-decimal value (a > 0)."""
    if a < ONE_18:
        return -_ln((ONE_18 * ONE_18) // a)

    total = 0
    if a >= _A0 * ONE_18:
        a //= _A0
        total += _X0
    if a >= _A1 * ONE_18:
        a //= _A1
        total += _X1

    total *= 100
    a *= 100

    for x_n, a_n in _TABLE_20:
        if a >= a_n:
            a = (a * ONE_20) // a_n
            total += x_n

    # ln(a) = 2 * arctanh(z), z = (a - 1) / (a + 1)
    z = ((a - ONE_20) * ONE_20) // (a + ONE_20)
    z_squared = (z * z) // ONE_20
    num = z
    series = num
    for i in range(3, 12, 2):
        num = (num * z_squared) // ONE_20
        series += num // i

    return (total + series * 2) // 100


def _ln_36(x: int) -> int:
    """Natural logarithm with 36 decimals, for x close to one."""
    x *= ONE_18
    z = _div_trunc((x - ONE_36) * ONE_36, x + ONE_36)
    z_squared = _div_trunc(z * z, ONE_36)
    num = z
    series = num
    for i in range(3, 16, 2):
        num = _div_trunc(num * z_squared, ONE_36)
        series += _div_trunc(num, i)
    return series * 2


def exp(x: int) -> int:
    """e^x for an 18-decimal exponent.

    Raises:
        InvalidExponent: If x is outside the representable range.
    """
    if not (MIN_NATURAL_EXPONENT <= x <= MAX_NATURAL_EXPONENT):
        raise InvalidExponent(f"Exponent {x} outside valid range")

    if x < 0:
        return (ONE_18 * ONE_18) // exp(-x)

    if x >= _X0:
        x -= _X0
        first_an = _A0
    elif x >= _X1:
        x -= _X1
        first_an = _A1
    else:
        first_an = 1

    x *= 100

    # The last two table entries are only used by ln
    product = ONE_20
    for x_n, a_n in _TABLE_20[:8]:
        if x >= x_n:
            x -= x_n
            product = (product * a_n) // ONE_20

    series = ONE_20
    term = x
    series += term
    for i in range(2, 13):
        term = ((term * x) // ONE_20) // i
        series += term

    return (((product * series) // ONE_20) * first_an) // 100


def pow_raw(x: int, y: int) -> int:
    """x^y for non-negative 18-decimal values, as LogExpMath.pow().

    Raises:
        XOutOfBounds: If x does not fit a signed 256-bit integer.
        YOutOfBounds: If y exceeds MILD_EXPONENT_BOUND.
        ProductOutOfBounds: If y * ln(x) is outside the range of exp.
    """
    if y == 0:
        return ONE_18
    if x == 0:
        return 0
    if x >= (1 << 255):
        raise XOutOfBounds(f"Base {x} too large")
    if y >= MILD_EXPONENT_BOUND:
        raise YOutOfBounds(f"Exponent {y} exceeds bound")

    if LN_36_LOWER_BOUND < x < LN_36_UPPER_BOUND:
        ln_36_x = _ln_36(x)
        quotient = _div_trunc(ln_36_x, ONE_18)
        remainder = ln_36_x - quotient * ONE_18
        logx_times_y = quotient * y + _div_trunc(remainder * y, ONE_18)
    else:
        logx_times_y = _ln(x) * y
    logx_times_y = _div_trunc(logx_times_y, ONE_18)

    if not (MIN_NATURAL_EXPONENT <= logx_times_y <= MAX_NATURAL_EXPONENT):
        raise ProductOutOfBounds(f"Product {logx_times_y} outside valid range")

    return exp(logx_times_y)


class Bfp:
    """Non-negative 18-decimal fixed-point number.

    1.5 is stored as 1_500_000_000_000_000_000. Every operation returns a new
    instance; rounding direction is explicit in the method name.
    """

    ONE: ClassVar[int] = ONE_18
    MAX_POW_RELATIVE_ERROR: ClassVar[int] = 10000  # 10^-14

    __slots__ = ("value",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, value: int) -> None:
        self.value = value

    @classmethod
    def from_decimal(cls, d: Decimal) -> Bfp:
        """Scale a decimal by 10^18, rounding half up.

        Raises:
            ValueError: If d is negative.
        """
        if d < 0:
            raise ValueError(f"Bfp.from_decimal requires non-negative input, got {d}")
        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            scaled = (d * cls.ONE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return cls(int(scaled))

    @classmethod
    def from_decimal_down(cls, d: Decimal) -> Bfp:
        """Scale a decimal by 10^18, truncating."""
        if d < 0:
            raise ValueError(f"Bfp.from_decimal requires non-negative input, got {d}")
        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            scaled = (d * cls.ONE).quantize(Decimal("1"), rounding=ROUND_DOWN)
        return cls(int(scaled))

    @classmethod
    def from_int(cls, i: int) -> Bfp:
        return cls(i * cls.ONE)

    def to_decimal(self) -> Decimal:
        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            return Decimal(self.value) / Decimal(self.ONE)

    def is_zero(self) -> bool:
        return self.value == 0

    def mul_down(self, other: Bfp) -> Bfp:
        return Bfp((self.value * other.value) // self.ONE)

    def mul_up(self, other: Bfp) -> Bfp:
        product = self.value * other.value
        if product == 0:
            return Bfp(0)
        return Bfp((product - 1) // self.ONE + 1)

    def div_down(self, other: Bfp) -> Bfp:
        if other.value == 0:
            raise ZeroDivisionError("Bfp division by zero")
        return Bfp((self.value * self.ONE) // other.value)

    def div_up(self, other: Bfp) -> Bfp:
        if other.value == 0:
            raise ZeroDivisionError("Bfp division by zero")
        numerator = self.value * self.ONE
        if numerator == 0:
            return Bfp(0)
        return Bfp((numerator - 1) // other.value + 1)

    def complement(self) -> Bfp:
        """1 - self, clamped to 0."""
        return Bfp(max(0, self.ONE - self.value))

    def add(self, other: Bfp) -> Bfp:
        return Bfp(self.value + other.value)

    def sub(self, other: Bfp) -> Bfp:
        """self - other, clamped to 0."""
        return Bfp(max(0, self.value - other.value))

    def _max_pow_error(self, raw: int) -> int:
        product = raw * self.MAX_POW_RELATIVE_ERROR
        return (((product - 1) // self.ONE + 1) if product > 0 else 0) + 1

    def pow_down(self, exponent: Bfp) -> Bfp:
        """self^exponent, rounded down by the maximum relative pow error."""
        raw = pow_raw(self.value, exponent.value)
        max_error = self._max_pow_error(raw)
        if raw < max_error:
            return Bfp(0)
        return Bfp(raw - max_error)

    def pow_up(self, exponent: Bfp) -> Bfp:
        """self^exponent, rounded up by the maximum relative pow error."""
        raw = pow_raw(self.value, exponent.value)
        return Bfp(raw + self._max_pow_error(raw))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value >= other.value

    def __repr__(self) -> str:
        return f"Bfp({self.value})"

    def __str__(self) -> str:
        return str(self.to_decimal())


MAX_IN_RATIO = Bfp(3 * 10**17)  # 0.3
MAX_OUT_RATIO = Bfp(3 * 10**17)  # 0.3
AMP_PRECISION = 1000
