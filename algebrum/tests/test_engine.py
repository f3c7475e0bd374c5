"""Tests for the s-expression reader, rule DSL and RuleEngine."""

import pytest
from algebrum import (
    RuleEngine, RuleMetadata, RewriteStep, RewriteTrace, E, parse_sexpr,
    parse_rule_line, load_rules_from_dsl, symbol, integer, rational, real,
)
from algebrum.engine import holds
from algebrum.expr import (
    PI, Exact, Relation, RestWildcard, Wildcard, cos, ln, sin,
)
from algebrum.expr import E as EULER
from algebrum.identities import identity_engine

x = symbol("x")
y = symbol("y")


class TestReader:
    """Tests for parse_sexpr."""

    def test_compound(self):
        """Compounds go through the normalizing constructors."""
        assert parse_sexpr("(+ x 1)") == x + 1
        assert parse_sexpr("(sin (* 2 x))") == sin(2 * x)

    def test_numbers(self):
        """Integers, rationals and floats."""
        assert parse_sexpr("-3") == -3
        assert parse_sexpr("1/2") == rational(1, 2)
        assert parse_sexpr("0.5") == real(0.5)

    def test_constants(self):
        """Constant names are never symbols."""
        assert parse_sexpr("pi") == PI
        assert parse_sexpr("e") == EULER

    def test_pattern_atoms(self):
        """?x, ?x:const, ?x:free(v) and ?x... build pattern nodes."""
        assert parse_sexpr("?a") == Wildcard("a")
        assert parse_sexpr("?a:const") == Wildcard("a", "const")
        assert parse_sexpr("?a:free(x)") == Wildcard("a", ("free", "x"))
        assert parse_sexpr("?a:expr") == Wildcard("a")
        assert parse_sexpr("?r...") == RestWildcard("r")
        assert parse_sexpr(":r...") == RestWildcard("r")

    def test_exact_and_relations(self):
        """exact and relation heads."""
        assert parse_sexpr("(exact (sin x))") == Exact(sin(x))
        assert parse_sexpr("(< x 1)") == Relation("<", x, integer(1))

    def test_difference_and_quotient(self):
        """- and / with two arguments."""
        assert parse_sexpr("(- x y)") == x - y
        assert parse_sexpr("(- x)") == -x
        assert parse_sexpr("(/ x 2)") == x / 2

    def test_empty(self):
        """An empty string reads as None."""
        assert parse_sexpr("") is None
        assert parse_sexpr("   ") is None

    @pytest.mark.parametrize("text", [
        "(+ x 1", "(+ x 1) y", "()", "((f) x)", "?a:weird", "(^ x)",
    ])
    def test_malformed(self, text):
        """Malformed input raises ValueError."""
        with pytest.raises(ValueError):
            parse_sexpr(text)


class TestExprBuilder:
    """Tests for the E builder."""

    def test_call_parses(self):
        """E(text) parses."""
        assert E("(sin x)") == sin(x)

    def test_op(self):
        """E.op lifts strings and numbers."""
        assert E.op("+", "x", 1) == x + 1
        assert E.op("sin", E.op("*", 2, "x")) == sin(2 * x)

    def test_vars_and_const(self):
        """E.vars and E.const build leaves."""
        a, b = E.vars("a", "b")
        assert (a.name, b.name) == ("a", "b")
        assert E.var("x") == x
        assert E.const(2) == 2


class TestRuleParsing:
    """Tests for parse_rule_line and load_rules_from_dsl."""

    def test_full_header(self):
        """Name, priority, description and guard."""
        metadata, pattern, template = parse_rule_line(
            '@shift[5] "f to g": (f ?n) => (g :n) when (positive? :n)')
        assert metadata.name == "shift"
        assert metadata.priority == 5
        assert metadata.description == "f to g"
        assert metadata.condition == parse_sexpr("(positive? :n)")
        assert pattern == parse_sexpr("(f ?n)")
        assert template == parse_sexpr("(g :n)")

    def test_anonymous_rule(self):
        """A rule without a header."""
        metadata, _, _ = parse_rule_line("(f ?x) => :x")
        assert metadata.name is None
        assert metadata.priority == 0

    def test_non_rules(self):
        """Blank lines, comments and text without => are skipped."""
        assert parse_rule_line("") is None
        assert parse_rule_line("# comment") is None
        assert parse_rule_line("@broken: (f ?x)") is None

    def test_when_inside_symbol_is_not_a_guard(self):
        """Only a standalone 'when' starts a guard."""
        metadata, _, template = parse_rule_line("(f ?x) => (whenever :x)")
        assert metadata.condition is None
        assert template == parse_sexpr("(whenever :x)")

    def test_groups_tag_rules(self):
        """[group] lines tag the rules that follow."""
        rules = load_rules_from_dsl('''
            @plain: (f ?x) => :x
            [trig]
            @a: (g ?x) => :x
            [log]
            @b: (h ?x) => :x
        ''')
        assert [meta.tags for meta, _ in rules] == [[], ["trig"], ["log"]]

    def test_metadata_repr(self):
        """RuleMetadata prints as its DSL header."""
        meta = RuleMetadata(name="r", priority=3, description="d",
                            condition=parse_sexpr("(integer? :n)"))
        assert repr(meta) == '@r[3] "d" when (integer? ?n)'
        assert repr(RuleMetadata()) == "<anonymous>"


class TestGuards:
    """Tests for guard evaluation."""

    @pytest.mark.parametrize("text,expected", [
        ("(integer? 3)", True),
        ("(integer? 1/2)", False),
        ("(rational? 1/2)", True),
        ("(even? 4)", True),
        ("(odd? 4)", False),
        ("(var? x)", True),
        ("(const? x)", False),
        ("(and (positive? 2) (not (zero? 1)))", True),
        ("(or (negative? 2) (nonzero? 0))", False),
        ("(> 3 1)", True),
        ("(<= 3 1)", False),
        ("(< x 1)", False),
        ("(= x x)", True),
        ("0", False),
    ])
    def test_holds(self, text, expected):
        """Predicates, connectives and numeric comparisons."""
        assert holds(parse_sexpr(text)) == expected

    def test_guarded_rule(self):
        """A rule fires only when its guard holds."""
        engine = RuleEngine.from_dsl("@pos: (f ?n) => (g :n) when (positive? :n)")
        assert engine(E("(f 3)")) == E("(g 3)")
        assert engine(E("(f -3)")) == E("(f -3)")
        assert engine(E("(f y)")) == E("(f y)")

    def test_comparison_guard(self):
        """Guards can compare bound numbers."""
        engine = RuleEngine.from_dsl("@big: (f ?n) => 0 when (> :n 10)")
        assert engine(E("(f 11)")) == 0
        assert engine(E("(f 10)")) == E("(f 10)")


class TestPriorities:
    """Tests for rule priorities."""

    def test_higher_priority_fires_first(self):
        """Priority beats load order."""
        engine = RuleEngine.from_dsl('''
            @low: (f ?x) => (g :x)
            @high[10]: (f ?x) => (h :x)
        ''')
        assert engine._metadata[0].name == "high"
        assert engine(E("(f y)")) == E("(h y)")

    def test_ties_keep_load_order(self):
        """Equal priorities fire in load order."""
        engine = RuleEngine.from_dsl('''
            @first: (f ?x) => (g :x)
            @second: (f ?x) => (h :x)
        ''')
        assert engine(E("(f y)")) == E("(g y)")

    def test_negative_priority(self):
        """Negative priorities sort last."""
        engine = RuleEngine.from_dsl('''
            @fallback[-1]: (f ?x) => (h :x)
            @normal: (f ?x) => (g :x)
        ''')
        assert [meta.name for _, meta in engine] == ["normal", "fallback"]


class TestGroups:
    """Tests for rule groups."""

    def setup_method(self):
        """Two groups chained f -> g -> h."""
        self.engine = RuleEngine.from_dsl('''
            [first]
            @f-to-g: (f ?x) => (g :x)
            [second]
            @g-to-h: (g ?x) => (h :x)
        ''')

    def test_groups(self):
        """groups() lists the tags."""
        assert self.engine.groups() == {"first", "second"}

    def test_disable_group(self):
        """Disabled groups do not fire."""
        self.engine.disable_group("second")
        assert self.engine(E("(f y)")) == E("(g y)")
        self.engine.enable_group("second")
        assert self.engine(E("(f y)")) == E("(h y)")

    def test_groups_argument(self):
        """rewrite(groups=...) restricts a single call."""
        assert self.engine.rewrite(E("(f y)"), groups=["first"]) == E("(g y)")
        assert self.engine(E("(f y)")) == E("(h y)")


class TestRewriting:
    """Tests for rewrite strategies and single steps."""

    def setup_method(self):
        """Set up test engine."""
        self.engine = RuleEngine.from_dsl('''
            @f-to-g: (f ?x) => (g :x)
            @g-to-h: (g ?x) => (h :x)
        ''')

    def test_fixpoint(self):
        """Rewriting repeats until nothing changes."""
        assert self.engine(E("(f y)")) == E("(h y)")

    def test_nested(self):
        """Sub-expressions are rewritten."""
        assert self.engine(E("(+ 1 (f y))")) == E("(+ 1 (h y))")

    def test_once(self):
        """The once strategy applies a single rule."""
        result, trace = self.engine.rewrite(E("(+ (f a) (f b))"), strategy="once", trace=True)
        assert len(trace) == 1
        assert result != E("(+ (f a) (f b))")

    def test_topdown(self):
        """Top-down reaches the same fixpoint here."""
        assert self.engine.rewrite(E("(+ (f a) (f b))"), strategy="topdown") == E("(+ (h a) (h b))")

    def test_unknown_strategy(self):
        """Unknown strategies raise ValueError."""
        with pytest.raises(ValueError):
            self.engine.rewrite(x, strategy="sideways")

    def test_max_steps(self):
        """A non-terminating rule set stops after max_steps."""
        engine = RuleEngine.from_dsl("@grow: (f ?x) => (f (g :x))")
        _, trace = engine.rewrite(E("(f y)"), max_steps=3, trace=True)
        assert len(trace) == 3

    def test_apply_once(self):
        """apply_once works at the root only."""
        result, applied = self.engine.apply_once(E("(f y)"))
        assert result == E("(g y)")
        assert applied.name == "f-to-g"
        expr = E("(+ 1 (f y))")
        assert self.engine.apply_once(expr) == (expr, None)

    def test_rules_matching(self):
        """rules_matching lists every matching rule with its bindings."""
        found = self.engine.rules_matching(E("(f y)"))
        assert len(found) == 1
        meta, bindings = found[0]
        assert meta.name == "f-to-g"
        assert bindings["x"] == y

    def test_match(self):
        """engine.match accepts pattern strings."""
        assert self.engine.match("(+ ?a ?b)", x + 1)
        assert not self.engine.match("(sin ?a)", x)

    def test_rewrite_is_canonical(self):
        """Results are rebuilt through the constructors."""
        engine = RuleEngine.from_dsl("@double: (+ ?x ?x) => (* 2 :x)")
        assert engine(E("(+ y y)")) == 2 * y


class TestTrace:
    """Tests for RewriteTrace."""

    def setup_method(self):
        """Trace f -> g -> h."""
        engine = RuleEngine.from_dsl('''
            @f-to-g "first step": (f ?x) => (g :x)
            @g-to-h: (g ?x) => (h :x)
        ''')
        self.result, self.trace = engine(E("(f y)"), trace=True)

    def test_steps(self):
        """Steps record rule, before and after."""
        assert self.trace.rules_applied() == ["f-to-g", "g-to-h"]
        step = self.trace.steps[0]
        assert isinstance(step, RewriteStep)
        assert step.before == E("(f y)")
        assert step.after == E("(g y)")
        assert self.trace.final == self.result

    def test_formats(self):
        """Each format style renders."""
        assert "Initial: (f y)" in self.trace.format("verbose")
        assert "(first step)" in self.trace.format("verbose")
        assert self.trace.format("compact") == "(f y) --[f-to-g, g-to-h]--> (h y)"
        assert self.trace.format("rules") == "f-to-g -> g-to-h"
        assert self.trace.format("chain").splitlines() == [
            "(f y)", "  --(f-to-g)-->", "(g y)", "  --(g-to-h)-->", "(h y)",
        ]

    def test_unknown_format(self):
        """Unknown styles raise ValueError."""
        with pytest.raises(ValueError):
            self.trace.format("fancy")

    def test_to_dict(self):
        """to_dict is serializable text."""
        data = self.trace.to_dict()
        assert data["initial"] == "(f y)"
        assert data["final"] == "(h y)"
        assert data["step_count"] == 2
        assert data["steps"][0]["description"] == "first step"

    def test_counts_and_summary(self):
        """rule_counts and summary."""
        assert self.trace.rule_counts() == {"f-to-g": 1, "g-to-h": 1}
        assert self.trace.summary().startswith("2 steps using 2 unique rules")

    def test_empty_trace(self):
        """A trace without steps is falsy."""
        trace = RewriteTrace(x)
        assert not trace
        assert trace.format("rules") == "(no rules applied)"
        assert trace.summary() == "No rewriting performed"


class TestEngineContainer:
    """Tests for lookup, export and combination."""

    def setup_method(self):
        """Set up test engine."""
        self.engine = RuleEngine.from_dsl('''
            [grp]
            @f-to-g: (f ?x) => (g :x)
            @guarded[2]: (h ?n) => 0 when (zero? :n)
        ''')

    def test_lookup(self):
        """Rules are found by name."""
        assert "f-to-g" in self.engine
        (pattern, template), meta = self.engine["f-to-g"]
        assert pattern == E("(f ?x)")
        assert meta.tags == ["grp"]
        assert self.engine.get_rule("missing") is None
        with pytest.raises(KeyError):
            _ = self.engine["missing"]

    def test_add_rule(self):
        """add_rule parses strings."""
        self.engine.add_rule("(k ?x)", ":x", name="unwrap", condition="(var? :x)", group="misc")
        assert len(self.engine) == 3
        assert self.engine(E("(k y)")) == y
        assert "misc" in self.engine.groups()

    def test_list_rules(self):
        """list_rules writes DSL lines."""
        lines = self.engine.list_rules()
        assert lines[0] == "@guarded[2]: (h ?n) => 0 when (zero? ?n)"
        assert lines[1] == "@f-to-g: (f ?x) => (g ?x)"

    def test_to_dsl_roundtrip(self):
        """Exported DSL loads back into an equivalent engine."""
        text = self.engine.to_dsl("demo")
        assert text.startswith("# demo")
        assert "[grp]" in text
        again = RuleEngine.from_dsl(text)
        assert len(again) == len(self.engine)
        assert again(E("(f y)")) == E("(g y)")
        assert again(E("(h 0)")) == 0

    def test_copy_is_independent(self):
        """Copies do not share rules."""
        other = self.engine.copy()
        other.clear()
        assert len(other) == 0
        assert len(self.engine) == 2

    def test_union(self):
        """engine | engine combines rules."""
        extra = RuleEngine.from_dsl("@g-to-h: (g ?x) => (h :x)")
        combined = self.engine | extra
        assert len(combined) == 3
        assert combined(E("(f y)")) == E("(h y)")
        self.engine |= extra
        assert len(self.engine) == 3

    def test_rules_property_is_a_copy(self):
        """rules returns a fresh list."""
        self.engine.rules.clear()
        assert len(self.engine) == 2


class TestIdentityEngine:
    """Tests for the registry-driven identity rules."""

    def test_pythagorean(self):
        """sin^2 + cos^2 rewrites to 1."""
        assert identity_engine()(sin(x) ** 2 + cos(x) ** 2) == 1

    def test_pythagorean_with_rest(self):
        """Other terms survive."""
        assert identity_engine()(sin(x) ** 2 + cos(x) ** 2 + y) == y + 1

    def test_ln_exp(self):
        """ln(exp(y)) = y."""
        assert identity_engine()(E("(ln (exp y))")) == y

    def test_groups_follow_function_families(self):
        """Identities are grouped by family."""
        assert {"trig", "exp-log"} <= identity_engine().groups()

    def test_disabled_family(self):
        """A copy with trig disabled keeps sin^2 + cos^2."""
        engine = identity_engine().copy().disable_group("trig")
        expr = sin(x) ** 2 + cos(x) ** 2
        assert engine(expr) == expr
        assert engine(ln(E("(exp y)"))) == y
