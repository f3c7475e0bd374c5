"""Tests for numerical evaluation."""

import math

import pytest
from algebrum import (
    evaluate, symbol, integer, rational, real, function, undefined, Symbol,
    MathError, DivisionByZero, DomainError, Pole, BranchCut, Undefined,
    NumericOverflow, FeatureNotImplemented,
)
from algebrum.expr import (
    E, I, INFINITY, PI, div, exp, ln, matrix_expr, mul, power, sin, sqrt, tan,
)

x = symbol("x")
y = symbol("y")


def as_float(result):
    return result.value.to_float()


class TestExactResults:
    """Exact inputs stay exact."""

    def test_polynomial(self):
        """x^2 + 1 at x = 3 is 10."""
        result = evaluate(x ** 2 + 1, {"x": 3})
        assert result == 10
        assert result.value.is_integer()

    def test_rational(self):
        """x/2 at x = 1 is 1/2."""
        assert evaluate(x / 2, {"x": 1}) == rational(1, 2)

    def test_powers_and_roots(self):
        """2^10 and 8^(1/3) are exact."""
        assert evaluate(power(2, 10)) == 1024
        assert evaluate(power(8, rational(1, 3))) == 2

    def test_factorial(self):
        """factorial(5) is 120."""
        assert evaluate(function("factorial", [5])) == 120

    def test_env_keys(self):
        """env may be keyed by name, Sym or Symbol."""
        expr = x + 2 * y
        assert evaluate(expr, {"x": 1, "y": 2}) == 5
        assert evaluate(expr, {x: 1, y: 2}) == 5
        assert evaluate(expr, {Symbol("x"): 1, Symbol("y"): 2}) == 5

    def test_env_values_are_expressions(self):
        """Bound values are evaluated themselves."""
        assert evaluate(x + 1, {"x": power(2, 3)}) == 9


class TestFloatResults:
    """Transcendental values become floats."""

    def test_sine(self):
        """sin(1.0)."""
        assert as_float(evaluate(sin(x), {"x": 1.0})) == pytest.approx(math.sin(1.0))

    def test_constants(self):
        """pi and e."""
        assert as_float(evaluate(PI)) == pytest.approx(math.pi)
        assert as_float(evaluate(E)) == pytest.approx(math.e)

    def test_irrational_root(self):
        """sqrt(2) is a float."""
        assert as_float(evaluate(sqrt(2))) == pytest.approx(math.sqrt(2))

    def test_mixed(self):
        """Floats absorb exact terms."""
        assert as_float(evaluate(x + rational(1, 2), {"x": real(0.25)})) == pytest.approx(0.75)

    def test_exact_argument_of_transcendental(self):
        """ln(2) is computed in floats."""
        assert as_float(evaluate(ln(integer(2)))) == pytest.approx(math.log(2))


class TestErrors:
    """Failures raise the MathError family."""

    def test_unbound_symbol(self):
        """A symbol without a value is undefined."""
        with pytest.raises(Undefined):
            evaluate(x + 1)

    def test_division_by_zero(self):
        """1/x at x = 0."""
        with pytest.raises(DivisionByZero):
            evaluate(div(1, x), {"x": 0})

    def test_no_simplification(self):
        """x/x at x = 0 is reported, not folded to 1."""
        with pytest.raises(DivisionByZero):
            evaluate(mul([x, power(x, -1)]), {"x": 0})

    def test_pole(self):
        """ln(0) and tan(pi/2) are poles."""
        with pytest.raises(Pole):
            evaluate(ln(x), {"x": 0})
        with pytest.raises(Pole):
            evaluate(tan(x), {"x": math.pi / 2})

    def test_branch_cut(self):
        """ln(-1) is a branch cut."""
        with pytest.raises(BranchCut):
            evaluate(ln(x), {"x": -1})

    def test_domain(self):
        """Even roots of negatives and arcsin(2) are domain errors."""
        with pytest.raises(DomainError):
            evaluate(power(-1, rational(1, 2)))
        with pytest.raises(DomainError):
            evaluate(function("arcsin", [2]))

    def test_overflow(self):
        """exp(1000) overflows."""
        with pytest.raises(NumericOverflow):
            evaluate(exp(x), {"x": 1000})

    def test_undefined_and_infinity(self):
        """The undefined marker and infinity have no value."""
        with pytest.raises(Undefined):
            evaluate(undefined())
        with pytest.raises(Undefined):
            evaluate(INFINITY)

    @pytest.mark.parametrize("expr", [
        I,
        matrix_expr([[1, 2], [3, 4]]),
        function("f", [integer(1)]),
    ])
    def test_not_implemented(self, expr):
        """Complex, matrix and unknown values are not evaluated."""
        with pytest.raises(FeatureNotImplemented):
            evaluate(expr)

    def test_common_base(self):
        """Every failure is a MathError."""
        with pytest.raises(MathError):
            evaluate(div(1, x), {"x": 0})
