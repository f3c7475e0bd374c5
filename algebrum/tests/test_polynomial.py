"""Tests for expansion, coefficient extraction and polynomial dispatch."""

from fractions import Fraction

import pytest
from algebrum import (
    expand, coefficients, degree, polynomial_gcd, polynomial_div,
    polynomial_quo, polynomial_rem, simplify, symbol, is_undefined,
    DivisionByZero,
)
from algebrum.expr import ONE, ZERO, sin
from algebrum.polynomial import (
    CoefficientRing, DensePoly, classify, from_dense, rational_roots,
    solve_fraction_system, to_dense,
)

x = symbol("x")
y = symbol("y")
a = symbol("a")
b = symbol("b")


class TestExpand:
    """Tests for expand()."""

    def test_square(self):
        """(x + 1)^2 multiplies out."""
        assert expand((x + 1) ** 2) == x ** 2 + 2 * x + 1

    def test_difference_of_squares(self):
        """(x + 1)(x - 1) is x^2 - 1."""
        assert expand((x + 1) * (x - 1)) == x ** 2 - 1

    def test_distribute_over_symbols(self):
        """2(x + y) is 2x + 2y."""
        assert expand(2 * (x + y)) == 2 * x + 2 * y

    def test_cube(self):
        """(x + y)^3 has four terms."""
        result = expand((x + y) ** 3)
        assert result == simplify(x ** 3 + 3 * x ** 2 * y + 3 * x * y ** 2 + y ** 3)

    def test_inside_functions(self):
        """Arguments are expanded too."""
        assert expand(sin((x + 1) ** 2)) == sin(x ** 2 + 2 * x + 1)


class TestCoefficients:
    """Tests for coefficients, degree and classify."""

    def test_numeric(self):
        """Numeric coefficients by degree."""
        assert coefficients(3 * x ** 2 + 2 * x + 1, x) == {2: 3, 1: 2, 0: 1}

    def test_symbolic(self):
        """Coefficients may contain other symbols."""
        assert coefficients(a * x ** 2 + b, x) == {2: a, 0: b}

    def test_after_expansion(self):
        """Products are expanded first."""
        assert coefficients((x + 1) * (x + 2), x) == {2: 1, 1: 3, 0: 2}

    def test_not_polynomial(self):
        """sin(x) and 1/x are not polynomials in x."""
        assert coefficients(sin(x), x) is None
        assert coefficients(x ** -1, x) is None

    def test_zero(self):
        """The zero polynomial has no coefficients."""
        assert coefficients(0, x) == {}

    def test_degree(self):
        """degree, with -1 for zero and None for non-polynomials."""
        assert degree(x ** 3 + x, x) == 3
        assert degree(y, x) == 0
        assert degree(0, x) == -1
        assert degree(sin(x), x) is None

    def test_classify(self):
        """Coefficient rings."""
        assert classify(x ** 2 + 1, x) is CoefficientRing.INTEGER
        assert classify(x / 2 + 1, x) is CoefficientRing.RATIONAL
        assert classify(a * x, x) is CoefficientRing.SYMBOLIC
        assert classify(sin(x), x) is None


class TestDensePoly:
    """Tests for DensePoly."""

    def test_structure(self):
        """Ascending coefficients; trailing zeros dropped."""
        p = DensePoly([1, 0, 2, 0])
        assert p.coeffs == (1, 0, 2)
        assert p.degree() == 2
        assert p.leading() == 2
        assert p[5] == 0
        assert DensePoly([]).degree() == -1
        assert DensePoly.monomial(3, 2) == DensePoly([0, 0, 3])

    def test_arithmetic(self):
        """+, - and *."""
        p = DensePoly([1, 1])
        q = DensePoly([-1, 1])
        assert p + q == DensePoly([0, 2])
        assert p - q == DensePoly([2])
        assert p * q == DensePoly([-1, 0, 1])
        assert p * 3 == DensePoly([3, 3])

    def test_divmod(self):
        """(x^2 - 1) / (x - 1) = x + 1 exactly."""
        q, r = divmod(DensePoly([-1, 0, 1]), DensePoly([-1, 1]))
        assert q == DensePoly([1, 1])
        assert r.is_zero()

    def test_divmod_with_remainder(self):
        """(x^2 + 1) / (2x) = x/2 remainder 1."""
        p, d = DensePoly([1, 0, 1]), DensePoly([0, 2])
        assert p // d == DensePoly([0, Fraction(1, 2)])
        assert p % d == DensePoly([1])

    def test_divide_by_zero(self):
        """Division by the zero polynomial raises DivisionByZero."""
        with pytest.raises(DivisionByZero):
            divmod(DensePoly([1, 1]), DensePoly([]))

    def test_content_and_primitive_part(self):
        """Content is positive; the primitive part has a positive lead."""
        assert DensePoly([2, 4]).content() == 2
        assert DensePoly([Fraction(1, 2), Fraction(3, 4)]).content() == Fraction(1, 4)
        assert DensePoly([Fraction(1, 2), Fraction(3, 4)]).primitive_part() == DensePoly([2, 3])
        assert DensePoly([-2, -4]).primitive_part() == DensePoly([1, 2])

    def test_monic(self):
        """monic divides by the leading coefficient."""
        assert DensePoly([2, 4]).monic() == DensePoly([Fraction(1, 2), 1])

    def test_integer_gcd(self):
        """gcd(x^2 - 1, x^2 + 2x + 1) = x + 1."""
        assert DensePoly([-1, 0, 1]).gcd(DensePoly([1, 2, 1])) == DensePoly([1, 1])

    def test_gcd_keeps_common_content(self):
        """gcd(2x + 2, 4x + 4) = 2x + 2."""
        assert DensePoly([2, 2]).gcd(DensePoly([4, 4])) == DensePoly([2, 2])

    def test_rational_gcd_is_monic(self):
        """Rational inputs give a monic gcd."""
        g = DensePoly([Fraction(1, 2), 1]).gcd(DensePoly([1, 2]))
        assert g == DensePoly([Fraction(1, 2), 1])

    def test_coprime(self):
        """Coprime inputs have a constant gcd."""
        assert DensePoly([1, 1]).gcd(DensePoly([2, 1])).degree() == 0

    def test_evaluate_and_derivative(self):
        """Horner evaluation and formal derivative."""
        p = DensePoly([1, 0, 2])
        assert p.evaluate(3) == 19
        assert p.evaluate(Fraction(1, 2)) == Fraction(3, 2)
        assert p.derivative() == DensePoly([0, 4])

    def test_tree_conversion(self):
        """to_dense and from_dense."""
        assert to_dense(x ** 2 + 2 * x + 1, x) == DensePoly([1, 2, 1])
        assert to_dense(a * x, x) is None
        assert from_dense(DensePoly([1, 0, 3]), x) == 3 * x ** 2 + 1
        assert from_dense(DensePoly([]), x) == ZERO


class TestDispatch:
    """Tests for polynomial GCD and division on trees."""

    def test_gcd(self):
        """gcd(x^2 - 1, x - 1) = x - 1."""
        assert polynomial_gcd(x ** 2 - 1, x - 1, x) == x - 1

    def test_gcd_coprime(self):
        """Coprime polynomials have gcd 1."""
        assert polynomial_gcd(x + 1, x + 2, x) == ONE

    def test_symbolic_gcd(self):
        """Symbolic coefficients use the tree fallback."""
        assert polynomial_gcd(a * x + a, x + 1, x) == x + 1

    def test_div(self):
        """(x^3 - 1) / (x - 1) = x^2 + x + 1."""
        q, r = polynomial_div(x ** 3 - 1, x - 1, x)
        assert q == x ** 2 + x + 1
        assert r == ZERO

    def test_quo_and_rem(self):
        """x^2 + 1 = (x - 1)(x + 1) + 2."""
        assert polynomial_quo(x ** 2 + 1, x - 1, x) == x + 1
        assert polynomial_rem(x ** 2 + 1, x - 1, x) == 2

    def test_division_identity(self):
        """a = q*b + r for the dense path."""
        dividend, divisor = 2 * x ** 3 + x + 5, x ** 2 + 1
        q, r = polynomial_div(dividend, divisor, x)
        assert expand(q * divisor + r) == expand(dividend)

    def test_symbolic_div(self):
        """(a x^2 + a x) / x = a x + a."""
        q, r = polynomial_div(a * x ** 2 + a * x, x, x)
        assert q == simplify(a * x + a)
        assert r == ZERO

    def test_zero_divisor(self):
        """Division by zero gives undefined."""
        q, r = polynomial_div(x, 0, x)
        assert is_undefined(q) and is_undefined(r)

    def test_zero_dividend(self):
        """0 / b = 0 remainder 0."""
        assert polynomial_div(0, x + 1, x) == (ZERO, ZERO)

    def test_equal_inputs(self):
        """a / a = 1 remainder 0."""
        assert polynomial_div(x + 1, x + 1, x) == (ONE, ZERO)


class TestRationalRoots:
    """Tests for rational_roots and solve_fraction_system."""

    def test_simple(self):
        """x^2 - 1 has roots -1 and 1."""
        assert rational_roots(DensePoly([-1, 0, 1])) == [(-1, 1), (1, 1)]

    def test_multiplicities(self):
        """x^2 (x - 2)^2 has double roots 0 and 2."""
        assert rational_roots(DensePoly([0, 0, 4, -4, 1])) == [(0, 2), (2, 2)]

    def test_fraction_root(self):
        """2x - 1 has root 1/2."""
        assert rational_roots(DensePoly([-1, 2])) == [(Fraction(1, 2), 1)]

    def test_no_rational_roots(self):
        """x^2 + 1 and x^2 - 2 have none."""
        assert rational_roots(DensePoly([1, 0, 1])) == []
        assert rational_roots(DensePoly([-2, 0, 1])) == []

    def test_fraction_system(self):
        """2x + y = 5, x - y = 1."""
        assert solve_fraction_system([[2, 1], [1, -1]], [5, 1]) == [2, 1]

    def test_singular_system(self):
        """Dependent rows give None."""
        assert solve_fraction_system([[1, 2], [2, 4]], [3, 6]) is None
