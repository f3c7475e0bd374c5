"""Tests for symbols, expression nodes and the normalizing constructors."""

import pytest
from algebrum import (
    Symbol, SymbolKind, symbols, symbol, integer, rational, real, constant,
    add, mul, power, function, relation, format_sexpr, free_symbols,
    undefined, is_undefined, as_expr, DivisionByZero,
)
from algebrum.expr import (
    Add, Func, Integral, Mul, Num, Pow, PI, E, ONE, ZERO, HALF, MINUS_ONE,
    complex_, contains, depth, div, finite_set, ln, neg, node_count,
    operand_count, sin, cos, sort_key, sqrt, sub,
)

x = symbol("x")
y = symbol("y")


class TestSymbols:
    """Tests for Symbol and symbol kinds."""

    def test_equality_by_name_and_kind(self):
        """Symbols are equal when name and kind agree."""
        assert Symbol("x") == Symbol("x")
        assert Symbol("x") != Symbol("x", SymbolKind.MATRIX)

    def test_empty_name_rejected(self):
        """A symbol needs a name."""
        with pytest.raises(ValueError):
            Symbol("")

    def test_commutativity(self):
        """Only scalars commute."""
        assert Symbol("x").is_commutative
        assert not Symbol("A", SymbolKind.MATRIX).is_commutative
        assert not Symbol("H", SymbolKind.OPERATOR).is_commutative

    def test_symbols_helper(self):
        """symbols() splits on spaces and commas."""
        a, b, c = symbols("a, b c")
        assert (a.name, b.name, c.name) == ("a", "b", "c")

    def test_sym_node(self):
        """symbol() builds a Sym leaf."""
        assert x.name == "x"
        assert x.kind is SymbolKind.SCALAR
        assert x.is_atom


class TestAtoms:
    """Tests for number and constant leaves."""

    def test_integer(self):
        """integer() builds a number leaf equal to the int."""
        assert integer(3) == 3
        assert isinstance(integer(3), Num)

    def test_integer_rejects_float(self):
        """integer() only takes ints."""
        with pytest.raises(TypeError):
            integer(1.5)

    def test_rational(self):
        """rational() reduces and prints as p/q."""
        assert format_sexpr(rational(2, 4)) == "1/2"
        assert rational(4, 2) == 2

    def test_rational_zero_denominator(self):
        """rational(1, 0) raises DivisionByZero."""
        with pytest.raises(DivisionByZero):
            rational(1, 0)

    def test_real(self):
        """real() builds a float leaf."""
        assert real(0.25) == 0.25

    def test_constants(self):
        """Named constants are atoms; unknown names are rejected."""
        assert constant("pi") == PI
        assert constant("e") == E
        with pytest.raises(ValueError):
            constant("tau")

    def test_undefined_marker(self):
        """undefined() is a nullary function recognised by is_undefined."""
        assert is_undefined(undefined())
        assert not is_undefined(Func("f", (x,)))

    def test_num_hashes_like_number(self):
        """Num(3) and 3 agree as dictionary keys."""
        assert hash(integer(3)) == hash(3)
        assert {integer(3): "three"}[integer(3)] == "three"


class TestConstructors:
    """Tests for the normalizing constructors."""

    def test_add_drops_zero_and_unwraps(self):
        """x + 0 is x."""
        assert add([x, 0]) == x
        assert add([]) == ZERO

    def test_add_flattens(self):
        """Nested sums are flattened."""
        expr = add([add([x, y]), 1])
        assert isinstance(expr, Add)
        assert len(expr.terms) == 3

    def test_add_canonical_order(self):
        """Numbers first, then atoms, then compounds."""
        assert format_sexpr(x ** 2 + 2 * x + 1) == "(+ 1 (* 2 x) (^ x 2))"
        assert x + 1 == 1 + x

    def test_add_does_not_fold_numbers(self):
        """Folding numbers is the simplifier's job."""
        assert format_sexpr(add([1, 2])) == "(+ 1 2)"

    def test_mul_drops_one(self):
        """x * 1 is x."""
        assert mul([x, 1]) == x
        assert mul([]) == ONE

    def test_mul_zero_annihilates(self):
        """A literal zero factor makes the product zero."""
        assert mul([x, 0, y]) == ZERO

    def test_noncommutative_order_kept(self):
        """Matrix symbols keep the caller's order."""
        a = symbol("A", SymbolKind.MATRIX)
        b = symbol("B", SymbolKind.MATRIX)
        assert mul([b, a]) != mul([a, b])
        assert mul([b, a]).factors == (b, a)
        assert not mul([a, b]).is_commutative

    def test_power_trivial_laws(self):
        """x^0 = 1, x^1 = x, 0^0 = 1."""
        assert power(x, 0) == ONE
        assert power(x, 1) == x
        assert power(0, 0) == ONE

    def test_zero_to_negative_power_is_undefined(self):
        """0^-1 is the undefined marker."""
        assert is_undefined(power(0, -1))
        assert is_undefined(div(1, 0))

    def test_division_by_number(self):
        """x / 2 multiplies by the exact reciprocal."""
        assert format_sexpr(div(x, 2)) == "(* 1/2 x)"

    def test_division_by_symbol(self):
        """x / y uses a negative power."""
        assert div(x, y) == mul([x, power(y, MINUS_ONE)])

    def test_sub_and_neg(self):
        """x - y is x + (-1)y; neg of a number negates it."""
        assert sub(x, y) == add([x, mul([MINUS_ONE, y])])
        assert neg(integer(3)) == -3

    def test_sqrt_is_half_power(self):
        """sqrt(x) is x^(1/2)."""
        assert sqrt(x) == power(x, HALF)

    def test_log_alias(self):
        """log is ln; log(x, b) is ln(x)/ln(b)."""
        assert function("log", [x]) == ln(x)
        assert function("log", [x, 2]) == div(ln(x), ln(2))

    def test_special_values_folded(self):
        """Registered special values fold at construction."""
        assert sin(0) == ZERO
        assert sin(PI) == ZERO
        assert cos(0) == ONE
        assert ln(1) == ZERO
        assert ln(E) == ONE

    def test_wrong_arity(self):
        """Registered functions check their arity."""
        with pytest.raises(TypeError):
            function("sin", [x, y])

    def test_unknown_function(self):
        """Unregistered functions are kept as applications."""
        expr = function("f", [x, y])
        assert isinstance(expr, Func)
        assert format_sexpr(expr) == "(f x y)"

    def test_relation(self):
        """Relations check their operator."""
        assert format_sexpr(relation("<", x, 1)) == "(< x 1)"
        with pytest.raises(ValueError):
            relation("~", x, 1)

    def test_finite_set_dedupes(self):
        """Sets drop duplicates and sort canonically."""
        s = finite_set([y, x, x, 1])
        assert s.elements == (integer(1), x, y)

    def test_complex_with_zero_imaginary(self):
        """complex_(a, 0) is a."""
        assert complex_(x, 0) == x

    def test_operators_lift_python_numbers(self):
        """Python numbers and names are lifted."""
        assert 2 * x == mul([2, x])
        assert x ** 2 == Pow(x, integer(2))
        assert as_expr("z") == symbol("z")

    def test_as_expr_rejects_bool(self):
        """bool is not an expression."""
        with pytest.raises(TypeError):
            as_expr(True)


class TestStructure:
    """Tests for structural queries."""

    def test_structural_equality_and_hash(self):
        """Equal trees hash equally."""
        a = sin(x) + x * y
        b = y * x + sin(x)
        assert a == b
        assert hash(a) == hash(b)

    def test_free_symbols(self):
        """Free symbols are collected from every leaf."""
        assert free_symbols(sin(x) * y + 3) == {x, y}
        assert free_symbols(PI) == frozenset()

    def test_definite_integral_binds_its_variable(self):
        """A definite integral's variable is not free."""
        definite = Integral(x * y, x, (integer(0), integer(1)))
        assert definite.free_symbols == {y}
        assert Integral(x * y, x).free_symbols == {x, y}

    def test_depth_and_counts(self):
        """depth, operand_count and node_count."""
        expr = sin(x) + 1
        assert depth(expr) == 3
        assert operand_count(expr) == 2
        assert node_count(expr) == 4

    def test_contains(self):
        """contains finds sub-expressions anywhere."""
        assert contains(sin(x ** 2) + 1, x ** 2)
        assert not contains(sin(x) + 1, y)

    def test_sort_key_bands(self):
        """Numbers, then symbols, then constants, then compounds."""
        ordered = sorted([sin(x), PI, x, integer(5)], key=sort_key)
        assert ordered == [integer(5), x, PI, sin(x)]

    def test_printing(self):
        """repr is the s-expression form."""
        assert repr(sin(x) ** 2) == "(^ (sin x) 2)"
        assert str(x + 1) == "(+ 1 x)"
