"""Tests for the function registry."""

import math

import pytest
from algebrum import (
    REGISTRY, get_function, symbol, integer, BranchCut, DomainError,
    FeatureNotImplemented, NumericOverflow, Pole,
)
from algebrum.expr import Func, PI, ONE, HALF, ZERO, cos, mul, neg, rational, sin
from algebrum.number import Number

x = symbol("x")


class TestRegistry:
    """Tests for registry lookup."""

    def test_core_functions_registered(self):
        """Trig, exp/log, hyperbolic and special functions are present."""
        for name in ("sin", "cos", "tan", "arcsin", "arctan", "sinh", "cosh",
                     "exp", "ln", "abs", "sign", "gamma", "factorial"):
            assert name in REGISTRY

    def test_get_function(self):
        """get_function returns the entry or None."""
        assert get_function("sin").name == "sin"
        assert get_function("nope") is None

    def test_names_sorted(self):
        """names() lists every entry alphabetically."""
        names = REGISTRY.names()
        assert names == sorted(names)
        assert len(names) == len(REGISTRY)

    def test_parity(self):
        """sin is odd, cos is even, exp has no parity."""
        assert get_function("sin").parity == "odd"
        assert get_function("cos").parity == "even"
        assert get_function("exp").parity is None


class TestRecipes:
    """Tests for derivative and antiderivative recipes."""

    def test_sin_derivative(self):
        """d sin(u) = cos(u)."""
        assert get_function("sin").derivative(x) == cos(x)

    def test_cos_derivative(self):
        """d cos(u) = -sin(u)."""
        assert get_function("cos").derivative(x) == neg(sin(x))

    def test_exp_antiderivative(self):
        """The antiderivative of exp is exp."""
        info = get_function("exp")
        assert info.antiderivative(x) == Func("exp", (x,))


class TestSpecialValues:
    """Tests for folded special values."""

    @pytest.mark.parametrize("name,arg,expected", [
        ("sin", mul([HALF, PI]), ONE),
        ("cos", PI, integer(-1)),
        ("sin", mul([rational(1, 6), PI]), HALF),
        ("tan", mul([rational(1, 4), PI]), ONE),
        ("arcsin", ONE, mul([HALF, PI])),
        ("exp", ZERO, ONE),
    ])
    def test_special_value(self, name, arg, expected):
        """Special values fold to exact results."""
        assert get_function(name).special_value((arg,)) == expected

    def test_no_special_value(self):
        """Ordinary arguments have none."""
        assert get_function("sin").special_value((x,)) is None

    def test_exact_folders(self):
        """abs, sign and factorial fold exact arguments."""
        assert get_function("abs").exact(Number(-3)) == 3
        assert get_function("sign").exact(Number(-3)) == -1
        assert get_function("factorial").exact(Number(5)) == 120
        assert get_function("factorial").exact(Number(-1)) is None


class TestEvaluators:
    """Tests for numerical evaluators and their failures."""

    def test_sin(self):
        """sin evaluates through math.sin."""
        assert get_function("sin").evaluate(1.0) == math.sin(1.0)

    def test_ln_pole(self):
        """ln(0) is a pole."""
        with pytest.raises(Pole):
            get_function("ln").evaluate(0.0)

    def test_ln_branch_cut(self):
        """ln of a negative number is on the branch cut."""
        with pytest.raises(BranchCut):
            get_function("ln").evaluate(-1.0)

    def test_tan_pole(self):
        """tan(pi/2) is a pole."""
        with pytest.raises(Pole):
            get_function("tan").evaluate(math.pi / 2)

    def test_arcsin_domain(self):
        """arcsin(2) is outside the real domain."""
        with pytest.raises(DomainError) as excinfo:
            get_function("arcsin").evaluate(2.0)
        assert excinfo.value.operation == "arcsin"

    def test_exp_overflow(self):
        """exp(1000) overflows."""
        with pytest.raises(NumericOverflow):
            get_function("exp").evaluate(1000.0)

    def test_gamma_pole(self):
        """gamma has poles at non-positive integers."""
        with pytest.raises(Pole):
            get_function("gamma").evaluate(-2.0)

    def test_missing_evaluator(self):
        """Functions without an evaluator raise FeatureNotImplemented."""
        from algebrum.functions import FunctionInfo
        with pytest.raises(FeatureNotImplemented):
            FunctionInfo("mystery").evaluate(1.0)
