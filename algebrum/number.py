"""
Number tower for algebrum.

A Number wraps one of four shapes:

    INTEGER      - an int that fits a signed 64-bit machine word
    BIG_INTEGER  - any other int (arbitrary precision)
    RATIONAL     - a reduced fractions.Fraction with denominator > 1
    FLOAT        - a finite IEEE-754 double

Python ints never wrap, so promotion from INTEGER to BIG_INTEGER is just a
change of kind. Arithmetic is closed: each operation returns a Number or
raises DivisionByZero / NumericOverflow. Rationals are canonical (a
Fraction with denominator 1 becomes an int) and floats are finite.

Examples:
    Number(2**63 - 1) + Number(1)    # => Number(9223372036854775808), BIG_INTEGER
    Number(1) / Number(3)            # => Number(1/3)
    Number(4).pow(Number(Fraction(1, 2)))   # => Number(2)
    Number(2).pow(Number(Fraction(1, 2)))   # => None (not exact)
"""

import math
from enum import Enum
from fractions import Fraction
from typing import Optional, Union

from .errors import DivisionByZero, NumericOverflow

I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1

# Exponents whose result would need more bits than this are rejected
MAX_RESULT_BITS = 1 << 24

RawNumber = Union[int, Fraction, float]


class NumberKind(Enum):
    """Shape of a Number in the tower."""
    INTEGER = "integer"
    BIG_INTEGER = "big_integer"
    RATIONAL = "rational"
    FLOAT = "float"


def _canonical(value) -> RawNumber:
    """Normalize a raw Python number to its canonical shape."""
    if isinstance(value, bool):
        raise TypeError("Number does not accept bool")
    if isinstance(value, int):
        return value
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return value.numerator
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise NumericOverflow(f"non-finite float {value!r}")
        return value
    raise TypeError(f"Number expects int, Fraction or float, got {type(value).__name__}")


def _to_float(value: RawNumber) -> float:
    try:
        result = float(value)
    except OverflowError:
        raise NumericOverflow("value exceeds the float range")
    if not math.isfinite(result):
        raise NumericOverflow("value exceeds the float range")
    return result


def integer_root(n: int, k: int) -> int:
    """Largest integer r with r**k <= n, for n >= 0 and k >= 1."""
    if n < 0:
        raise ValueError("integer_root requires n >= 0")
    if n < 2 or k == 1:
        return n
    x = 1 << ((n.bit_length() + k - 1) // k)
    while True:
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            return x
        x = y


def exact_root(n: int, k: int) -> Optional[int]:
    """Return r with r**k == n, or None when n is not a perfect k-th power."""
    if n < 0:
        if k % 2 == 0:
            return None
        r = exact_root(-n, k)
        return None if r is None else -r
    r = integer_root(n, k)
    return r if r ** k == n else None


class Number:
    """
    Immutable exact-or-float number.

    Numbers compare equal to plain Python numbers of the same exactness:
    Number(3) == 3 and Number(0.5) == 0.5, but Number(1) != Number(1.0).
    """

    __slots__ = ('_value',)

    def __init__(self, value):
        if isinstance(value, Number):
            value = value._value
        self._value = _canonical(value)

    @property
    def value(self) -> RawNumber:
        """The underlying int, Fraction or float."""
        return self._value

    @property
    def kind(self) -> NumberKind:
        v = self._value
        if isinstance(v, float):
            return NumberKind.FLOAT
        if isinstance(v, Fraction):
            return NumberKind.RATIONAL
        if I64_MIN <= v <= I64_MAX:
            return NumberKind.INTEGER
        return NumberKind.BIG_INTEGER

    # ============================================================
    # Predicates
    # ============================================================

    def is_float(self) -> bool:
        return isinstance(self._value, float)

    def is_exact(self) -> bool:
        return not isinstance(self._value, float)

    def is_integer(self) -> bool:
        """True for INTEGER and BIG_INTEGER (floats are never integers here)."""
        return isinstance(self._value, int)

    def is_rational(self) -> bool:
        return isinstance(self._value, Fraction)

    def is_zero(self) -> bool:
        return self._value == 0

    def is_one(self) -> bool:
        return self._value == 1

    def is_negative(self) -> bool:
        return self._value < 0

    def is_positive(self) -> bool:
        return self._value > 0

    def sign(self) -> int:
        if self._value > 0:
            return 1
        if self._value < 0:
            return -1
        return 0

    @property
    def numerator(self) -> int:
        if isinstance(self._value, float):
            raise TypeError("float has no exact numerator")
        return Fraction(self._value).numerator

    @property
    def denominator(self) -> int:
        if isinstance(self._value, float):
            raise TypeError("float has no exact denominator")
        return Fraction(self._value).denominator

    # ============================================================
    # Conversions
    # ============================================================

    def to_float(self) -> float:
        """Convert to a float, raising NumericOverflow outside the float range."""
        return _to_float(self._value)

    def try_to_int(self) -> Optional[int]:
        """Return the value as an int when it is an integer that fits 64 bits."""
        v = self._value
        if isinstance(v, int) and I64_MIN <= v <= I64_MAX:
            return v
        return None

    def to_fraction(self) -> Fraction:
        if isinstance(self._value, float):
            raise TypeError("float is not exact")
        return Fraction(self._value)

    # ============================================================
    # Arithmetic
    # ============================================================

    @staticmethod
    def _mixed(a: RawNumber, b: RawNumber, op) -> 'Number':
        # Any float operand turns the operation into float arithmetic
        if isinstance(a, float) or isinstance(b, float):
            try:
                result = op(_to_float(a), _to_float(b))
            except OverflowError:
                raise NumericOverflow("float operation overflowed")
            if not math.isfinite(result):
                raise NumericOverflow("float operation produced a non-finite value")
            return Number(result)
        return Number(op(a, b))

    def add(self, other: 'Number') -> 'Number':
        return self._mixed(self._value, _raw(other), lambda a, b: a + b)

    def sub(self, other: 'Number') -> 'Number':
        return self._mixed(self._value, _raw(other), lambda a, b: a - b)

    def mul(self, other: 'Number') -> 'Number':
        return self._mixed(self._value, _raw(other), lambda a, b: a * b)

    def div(self, other: 'Number') -> 'Number':
        divisor = _raw(other)
        if divisor == 0:
            raise DivisionByZero()
        if isinstance(self._value, float) or isinstance(divisor, float):
            return self._mixed(self._value, divisor, lambda a, b: a / b)
        return Number(Fraction(self._value) / Fraction(divisor))

    def neg(self) -> 'Number':
        return Number(-self._value)

    def abs(self) -> 'Number':
        return Number(abs(self._value))

    def pow(self, other: 'Number') -> Optional['Number']:
        """
        Raise to a power.

        Returns:
            The result, or None when it is not representable in the tower
            (irrational root, even root of a negative number, complex float).

        Raises:
            DivisionByZero: zero raised to a negative power
            NumericOverflow: the result is too large
        """
        base = self._value
        exponent = _raw(other)

        if isinstance(exponent, float) or isinstance(base, float):
            return self._float_pow(base, exponent)

        if isinstance(exponent, int):
            return self._int_pow(base, exponent)

        # Fractional exponent p/q on an exact base
        p, q = exponent.numerator, exponent.denominator
        if base == 0:
            if p < 0:
                raise DivisionByZero("zero raised to a negative power")
            return Number(0)
        frac = Fraction(base)
        num = exact_root(frac.numerator, q)
        den = exact_root(frac.denominator, q)
        if num is None or den is None:
            return None
        return Number(Fraction(num, den)).pow(Number(p))

    @staticmethod
    def _int_pow(base, exponent: int) -> 'Number':
        if base == 0:
            if exponent < 0:
                raise DivisionByZero("zero raised to a negative power")
            return Number(1 if exponent == 0 else 0)
        if base in (1, -1) and isinstance(base, int):
            return Number(base ** exponent if exponent >= 0 else base ** -exponent)
        frac = Fraction(base)
        bits = max(frac.numerator.bit_length(), frac.denominator.bit_length())
        if bits * abs(exponent) > MAX_RESULT_BITS:
            raise NumericOverflow("exact power exceeds the size limit")
        if exponent >= 0:
            return Number(frac ** exponent)
        return Number(1 / frac ** -exponent)

    @staticmethod
    def _float_pow(base, exponent) -> Optional['Number']:
        b = _to_float(base)
        e = _to_float(exponent)
        if b == 0 and e < 0:
            raise DivisionByZero("zero raised to a negative power")
        if b < 0 and not e.is_integer():
            return None
        try:
            result = math.pow(b, e)
        except OverflowError:
            raise NumericOverflow("float power overflowed")
        if not math.isfinite(result):
            raise NumericOverflow("float power produced a non-finite value")
        return Number(result)

    # Python operators
    def __add__(self, other):
        return self.add(other) if _is_numeric(other) else NotImplemented

    def __radd__(self, other):
        return Number(other).add(self) if _is_numeric(other) else NotImplemented

    def __sub__(self, other):
        return self.sub(other) if _is_numeric(other) else NotImplemented

    def __rsub__(self, other):
        return Number(other).sub(self) if _is_numeric(other) else NotImplemented

    def __mul__(self, other):
        return self.mul(other) if _is_numeric(other) else NotImplemented

    def __rmul__(self, other):
        return Number(other).mul(self) if _is_numeric(other) else NotImplemented

    def __truediv__(self, other):
        return self.div(other) if _is_numeric(other) else NotImplemented

    def __rtruediv__(self, other):
        return Number(other).div(self) if _is_numeric(other) else NotImplemented

    def __neg__(self):
        return self.neg()

    def __abs__(self):
        return self.abs()

    # ============================================================
    # Comparison and hashing
    # ============================================================

    def __eq__(self, other):
        if not _is_numeric(other):
            return NotImplemented
        raw = _raw(other)
        if isinstance(raw, float) != isinstance(self._value, float):
            return False
        return self._value == raw

    def __hash__(self):
        return hash(self._value)

    def __lt__(self, other):
        return self._value < _raw(other) if _is_numeric(other) else NotImplemented

    def __le__(self, other):
        return self._value <= _raw(other) if _is_numeric(other) else NotImplemented

    def __gt__(self, other):
        return self._value > _raw(other) if _is_numeric(other) else NotImplemented

    def __ge__(self, other):
        return self._value >= _raw(other) if _is_numeric(other) else NotImplemented

    def __str__(self) -> str:
        v = self._value
        if isinstance(v, Fraction):
            return f"{v.numerator}/{v.denominator}"
        return repr(v)

    def __repr__(self) -> str:
        return f"Number({self})"


def _is_numeric(value) -> bool:
    return isinstance(value, (Number, int, Fraction, float)) and not isinstance(value, bool)


def _raw(value) -> RawNumber:
    if isinstance(value, Number):
        return value._value
    return _canonical(value)


ZERO = Number(0)
ONE = Number(1)
MINUS_ONE = Number(-1)
