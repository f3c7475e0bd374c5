"""Tests for pattern matching, bindings and instantiation."""

import pytest
from algebrum import Bindings, NoMatch, matches, instantiate, replace, parse_sexpr, symbol, configure, get_config
from algebrum.expr import (
    Exact, Func, Num, RestWildcard, SymbolKind, Wildcard, add, cos, eq, integer, mul, sin,
)
from algebrum.rewriter import (
    extend_bindings, free_in, lookup, match, match_sequence, wrap_bindings,
)

x = symbol("x")
y = symbol("y")
P = parse_sexpr


class TestFreeIn:
    """Tests for free_in."""

    def test_free_in_constant(self):
        """A variable is not free in a number."""
        assert not free_in(x, integer(42))

    def test_free_in_itself(self):
        """A variable is free in itself."""
        assert free_in(x, x)
        assert not free_in(x, y)

    def test_free_in_nested(self):
        """Nested occurrences count."""
        assert free_in(x, sin(2 * x) + 1)
        assert not free_in(y, sin(2 * x) + 1)


class TestExtendBindingsAndLookup:
    """Tests for the binding helpers."""

    def test_extend_empty(self):
        """Extending empty bindings adds a pair."""
        assert extend_bindings("a", x, []) == [["a", x]]

    def test_extend_consistent(self):
        """Rebinding to the same value keeps the bindings."""
        assert extend_bindings("a", x, [["a", x]]) == [["a", x]]

    def test_extend_inconsistent(self):
        """Rebinding to another value fails."""
        assert extend_bindings("a", y, [["a", x]]) == "failed"

    def test_extend_failed(self):
        """Failure is sticky."""
        assert extend_bindings("a", x, "failed") == "failed"

    def test_lookup(self):
        """lookup returns the bound value or the default."""
        assert lookup("a", [["a", x]]) == x
        assert lookup("b", [["a", x]]) is None
        assert lookup("b", [["a", x]], default=y) == y
        assert lookup("a", "failed") is None


class TestBindings:
    """Tests for Bindings and NoMatch."""

    def test_dict_interface(self):
        """Bindings read like a dict."""
        bindings = Bindings([["a", x], ["b", y]])
        assert bindings["a"] == x
        assert bindings.get("c") is None
        assert "b" in bindings
        assert set(bindings) == {"a", "b"}
        assert len(bindings) == 2
        assert bindings.to_dict() == {"a": x, "b": y}

    def test_missing_key(self):
        """Unknown names raise KeyError."""
        with pytest.raises(KeyError):
            _ = Bindings([])["a"]

    def test_empty_bindings_truthy(self):
        """A match that binds nothing is still a match."""
        assert bool(Bindings([]))

    def test_equality(self):
        """Bindings compare by content, also with dicts."""
        assert Bindings([["a", x]]) == Bindings([["a", x]])
        assert Bindings([["a", x]]) == {"a": x}
        assert Bindings([["a", x]]) != Bindings([["a", y]])

    def test_pairs_roundtrip(self):
        """pairs() is the internal form."""
        assert Bindings([["a", x]]).pairs() == [["a", x]]

    def test_nomatch(self):
        """NoMatch is a falsy, empty singleton."""
        from algebrum.rewriter import _NoMatch
        assert _NoMatch() is NoMatch
        assert not NoMatch
        assert len(NoMatch) == 0
        assert list(NoMatch) == []
        assert "a" not in NoMatch
        assert NoMatch.get("a", 1) == 1
        assert repr(NoMatch) == "NoMatch"
        with pytest.raises(KeyError):
            _ = NoMatch["a"]

    def test_wrap_bindings(self):
        """wrap_bindings converts the internal result."""
        assert wrap_bindings("failed") is NoMatch
        assert isinstance(wrap_bindings([]), Bindings)


class TestMatch:
    """Tests for match()."""

    def test_wildcard_binds_anything(self):
        """?a binds any expression."""
        assert match(Wildcard("a"), sin(x), []) == [["a", sin(x)]]

    def test_literal_atoms(self):
        """Atoms match only themselves."""
        assert match(x, x, []) == []
        assert match(x, y, []) == "failed"
        assert match(integer(2), integer(2), []) == []

    def test_commutative_sum(self):
        """Sums match in any order."""
        bindings = matches(x + 1, P("(+ ?a ?b)"))
        assert bindings
        assert {bindings["a"], bindings["b"]} == {integer(1), x}

    def test_repeated_wildcard(self):
        """A repeated wildcard must bind equal sub-expressions."""
        pattern = P("(+ ?a ?a)")
        assert matches(P("(+ y y)"), pattern)["a"] == y
        assert not matches(x + y, pattern)

    def test_head_mismatch(self):
        """Different heads never match."""
        assert matches(x * y, P("(+ ?a ?b)")) is NoMatch
        assert not matches(cos(x), P("(sin ?u)"))

    def test_function_arguments(self):
        """Function arguments match positionally."""
        assert matches(sin(x ** 2), P("(sin (^ ?u 2))"))["u"] == x

    def test_power(self):
        """Base and exponent both match."""
        bindings = matches(x ** 3, P("(^ ?b ?n:const)"))
        assert bindings["b"] == x
        assert bindings["n"] == 3

    def test_const_constraint(self):
        """?c:const binds numbers only."""
        bindings = matches(3 * x, P("(* ?c:const ?v)"))
        assert bindings["c"] == 3
        assert bindings["v"] == x
        assert not matches(y * x, P("(* ?c:const ?v)"))

    def test_var_constraint(self):
        """?v:var binds symbols only."""
        assert matches(x, P("?v:var"))
        assert not matches(sin(x), P("?v:var"))

    def test_free_constraint(self):
        """?f:free(x) refuses expressions containing x."""
        pattern = P("(* ?f:free(x) ?g)")
        bindings = matches(y * sin(x), pattern)
        assert bindings["f"] == y
        assert bindings["g"] == sin(x)
        assert not matches(x * sin(x), pattern)

    def test_predicate_constraint(self):
        """A callable constraint filters candidates."""
        even = Wildcard("n", lambda e: isinstance(e, Num) and e.value.is_integer()
                        and e.value.value % 2 == 0)
        assert matches(integer(4), even)
        assert not matches(integer(3), even)

    def test_exclude(self):
        """Excluded values are refused."""
        assert not matches(integer(0), Wildcard("a", exclude=[0]))
        assert matches(integer(1), Wildcard("a", exclude=[0]))

    def test_exact(self):
        """Exact matches literally."""
        assert matches(sin(x), Exact(sin(x)))
        assert not matches(sin(y), Exact(sin(x)))

    def test_rest_in_sum(self):
        """?rest... collects the remaining terms."""
        pattern = P("(+ (^ (sin ?x) 2) (^ (cos ?x) 2) ?rest...)")
        bindings = matches(sin(y) ** 2 + cos(y) ** 2 + x + 5, pattern)
        assert bindings["x"] == y
        assert set(bindings["rest"]) == {x, integer(5)}

    def test_rest_can_be_empty(self):
        """A rest wildcard may bind nothing."""
        pattern = P("(+ (^ (sin ?x) 2) (^ (cos ?x) 2) ?rest...)")
        assert matches(sin(x) ** 2 + cos(x) ** 2, pattern)["rest"] == ()

    def test_rest_in_function(self):
        """Rest wildcards work in function arguments."""
        bindings = matches(Func("f", (x, y, integer(1))), P("(f ?first ?more...)"))
        assert bindings["first"] == x
        assert bindings["more"] == (y, integer(1))

    def test_rest_must_be_last(self):
        """A rest pattern in the middle is a programming error."""
        with pytest.raises(ValueError):
            match_sequence([RestWildcard("r"), Wildcard("a")], [x, y], [])

    def test_noncommutative_positional(self):
        """Matrix products match in order only."""
        a = symbol("A", SymbolKind.MATRIX)
        b = symbol("B", SymbolKind.MATRIX)
        pattern = mul([Wildcard("p"), b])
        assert matches(mul([a, b]), pattern)["p"] == a
        assert not matches(mul([b, a]), pattern)

    def test_relation(self):
        """Relations match on operator and sides."""
        bindings = matches(eq(x, 1), P("(= ?l ?r)"))
        assert bindings["l"] == x
        assert not matches(eq(x, 1), P("(< ?l ?r)"))

    def test_greedy_above_permutation_limit(self):
        """Long sums use first-fit matching."""
        saved = get_config().permutation_limit
        configure(permutation_limit=2)
        try:
            terms = [symbol(n) for n in "abcdefg"]
            bindings = matches(add(terms), P("(+ ?first ?rest...)"))
            assert bindings
            assert len(bindings["rest"]) == 6
        finally:
            configure(permutation_limit=saved)


class TestInstantiateAndReplace:
    """Tests for instantiate() and replace()."""

    def test_instantiate(self):
        """Templates substitute bound values."""
        result = instantiate(P("(* 2 :a)"), Bindings([["a", x]]))
        assert result == 2 * x

    def test_instantiate_unbound(self):
        """Unbound wildcards are left in place."""
        assert instantiate(P(":a"), []) == Wildcard("a")

    def test_instantiate_splice(self):
        """:rest... splices into the argument list."""
        result = instantiate(P("(+ 1 :rest...)"), [["rest", (x, y)]])
        assert result == add([1, x, y])

    def test_instantiate_exact(self):
        """Exact nodes unwrap."""
        assert instantiate(Exact(x), []) == x

    def test_replace_everywhere(self):
        """Every match is rewritten."""
        result = replace(sin(x) + sin(y), P("(sin ?u)"), P("(cos :u)"))
        assert result == cos(x) + cos(y)

    def test_replace_nothing(self):
        """Without a match the expression comes back unchanged."""
        expr = x + 1
        assert replace(expr, P("(sin ?u)"), P("(cos :u)")) is expr

    def test_match_replace_consistency(self):
        """Replacing a match by its own pattern gives the input back."""
        expr = sin(x ** 2) + 3
        pattern = P("(+ ?c:const (sin ?u))")
        assert matches(expr, pattern)
        assert replace(expr, pattern, pattern) == expr
