"""
Rule engine and DSL loader for algebrum.

Identities are written as rewrite rules in a small DSL and applied by a
RuleEngine. The simplifier uses one such engine for the function
identities (see identities.py); callers may build their own.

DSL format:
    # Comment
    [group]
    @rule-name: pattern => template
    @rule-name[priority] "Description": pattern => template when condition

    Examples:
    @pythagorean "sin^2 + cos^2 = 1": (+ (^ (sin ?x) 2) (^ (cos ?x) 2) ?rest...) => (+ 1 :rest...)
    @exp-power: (^ (exp ?a) ?n) => (exp (* :n :a)) when (integer? :n)

Expression syntax (s-expressions, built through the normalizing
constructors so patterns are in canonical form):
    (+ a b ...) (* a b ...) (^ a b) (- a) (- a b) (/ a b)
    (= a b) (!= a b) (< a b) (<= a b) (> a b) (>= a b)
    (exact e)           - match e literally
    (name args ...)     - function application
    42  -3  1/2  0.5    - numbers
    pi e i phi euler_gamma infinity
                        - constants (so "e" is never a symbol here)

Pattern syntax:
    ?x                  - any expression, bind to x
    ?x:const            - number only
    ?x:var              - symbol only
    ?x:free(v)          - expression not containing v
    ?x...               - rest of an argument list

Template syntax:
    :x                  - bound value of x
    :x...               - splice the bound rest

Conditions:
    when (integer? :n)
    when (and (positive? :a) (not (zero? :b)))
    when (> :n 1)

Tracing:
    result, trace = engine.rewrite(expr, trace=True)
    print(trace.format("chain"))
"""

import logging
import re
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .expr import (
    CONSTANT_NAMES, RELATION_OPS, Exact, Expr, Func, Num, Relation,
    RestWildcard, Sym, Wildcard, add, constant, div, format_sexpr, function,
    mul, neg, number, power, rational, sub, symbol,
)
from .rewriter import Bindings, instantiate, match as _match_internal, wrap_bindings

logger = logging.getLogger(__name__)

__all__ = [
    "E", "parse_sexpr", "format_sexpr", "RuleMetadata", "parse_rule_line",
    "load_rules_from_dsl", "RewriteStep", "RewriteTrace", "RuleEngine",
]


# ============================================================
# S-expression reader
# ============================================================

_INTEGER_RE = re.compile(r'^[-+]?\d+$')
_RATIONAL_RE = re.compile(r'^-?\d+/\d+$')
_FLOAT_RE = re.compile(r'^[-+]?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$')


def _tokenize(s: str) -> List:
    """Split an s-expression into nested lists of atom strings."""
    s = s.strip()
    if not s:
        return []
    if not s.startswith('('):
        return [s]

    parts = []
    depth = 0
    current = ''
    i = 1  # Skip opening paren
    closed = False
    while i < len(s):
        c = s[i]
        if c == '(':
            depth += 1
            current += c
        elif c == ')':
            if depth == 0:
                if current.strip():
                    parts.append(_read(current.strip()))
                closed = True
                break
            depth -= 1
            current += c
        elif c in ' \t\n' and depth == 0:
            if current.strip():
                parts.append(_read(current.strip()))
            current = ''
        else:
            current += c
        i += 1
    if not closed:
        raise ValueError(f"Unbalanced parentheses in: {s}")
    if s[i + 1:].strip():
        raise ValueError(f"Trailing text after expression: {s[i + 1:].strip()}")
    return [parts]


def _read(s: str):
    """Read one datum: a nested list for compounds, a string for atoms."""
    if s.startswith('('):
        return _tokenize(s)[0]
    return s


def _atom(s: str) -> Expr:
    """Build an atom (number, constant, symbol, pattern variable)."""
    if s in CONSTANT_NAMES:
        return constant(s)
    if _INTEGER_RE.match(s):
        return number(int(s))
    if _RATIONAL_RE.match(s):
        p, q = s.split('/')
        return rational(int(p), int(q))
    if _FLOAT_RE.match(s):
        return number(float(s))

    if s.startswith('?'):
        rest = s[1:]
        if rest.endswith('...'):
            name = rest[:-3].split(':', 1)[0].strip() or 'x'
            return RestWildcard(name)
        if ':' in rest:
            name, type_part = rest.split(':', 1)
            name = name.strip() or 'x'
            if type_part in ('const', 'var'):
                return Wildcard(name, type_part)
            if type_part.startswith('free(') and type_part.endswith(')'):
                return Wildcard(name, ('free', type_part[5:-1].strip()))
            if type_part == 'expr':
                return Wildcard(name)
            raise ValueError(f"Unknown pattern type: {type_part}")
        return Wildcard(rest.strip() or 'x')

    if s.startswith(':'):
        rest = s[1:].strip()
        if rest.endswith('...'):
            return RestWildcard(rest[:-3].strip())
        return Wildcard(rest)

    return symbol(s)


def _build(head: str, args: Sequence[Expr]) -> Expr:
    """Build a compound node from a head name and built children."""
    if head == '+':
        return add(args)
    if head == '*':
        return mul(args)
    if head == '^':
        if len(args) != 2:
            raise ValueError("^ takes exactly two arguments")
        return power(args[0], args[1])
    if head == '-':
        if len(args) == 1:
            return neg(args[0])
        if len(args) == 2:
            return sub(args[0], args[1])
        raise ValueError("- takes one or two arguments")
    if head == '/':
        if len(args) != 2:
            raise ValueError("/ takes exactly two arguments")
        return div(args[0], args[1])
    if head in RELATION_OPS:
        if len(args) != 2:
            raise ValueError(f"{head} takes exactly two arguments")
        return Relation(head, args[0], args[1])
    if head == 'exact':
        if len(args) != 1:
            raise ValueError("exact takes exactly one argument")
        return Exact(args[0])
    return function(head, args)


def _to_expr(datum) -> Expr:
    if isinstance(datum, str):
        return _atom(datum)
    if not datum:
        raise ValueError("Empty expression ()")
    head = datum[0]
    if not isinstance(head, str):
        raise ValueError(f"Expression head must be a name: {datum!r}")
    return _build(head, [_to_expr(d) for d in datum[1:]])


def parse_sexpr(s: str) -> Optional[Expr]:
    """
    Parse an s-expression string into an expression.

    Returns None for an empty string.

    Examples:
        "(+ x 1)"          -> (+ 1 x)
        "(^ (sin ?x) 2)"   -> pattern with wildcard x
        "1/2"              -> the rational one half

    Raises:
        ValueError: On malformed input
    """
    tokens = _tokenize(s)
    if not tokens:
        return None
    return _to_expr(tokens[0])


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder.

    Examples:
        from algebrum import E

        # Parse s-expression string
        expr = E("(+ x (* 2 y))")

        # Build programmatically with E.op()
        expr = E.op("+", "x", E.op("*", 2, "y"))

        # Create variables
        x, y = E.vars("x", "y")
        expr = E.op("sin", E.op("*", 2, x))
    """

    def __call__(self, s: str) -> Expr:
        """Parse an s-expression string."""
        return parse_sexpr(s)

    def op(self, name: str, *args) -> Expr:
        """
        Build a compound expression from a head and arguments.

        Plain strings are symbols, numbers are lifted.

        Examples:
            E.op("+", "x", 1)      -> (+ 1 x)
            E.op("sin", "x")       -> (sin x)
        """
        built = [a if isinstance(a, Expr) else _lift(a) for a in args]
        return _build(name, built)

    def var(self, name: str) -> Sym:
        return symbol(name)

    def vars(self, *names: str) -> Tuple[Sym, ...]:
        """
        Create multiple symbols for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(symbol(n) for n in names)

    def const(self, value: Union[int, float, Fraction]) -> Num:
        return number(value)

    def __repr__(self) -> str:
        return "E (expression builder)"


def _lift(value) -> Expr:
    if isinstance(value, str):
        return _atom(value)
    return number(value)


# Singleton instance
E = _ExprBuilder()


# ============================================================
# Rules
# ============================================================

class RuleMetadata:
    """Metadata for a rule including name, description, priority, and condition."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None, condition: Optional[Expr] = None,
                 priority: int = 0):
        self.name = name
        self.description = description
        self.tags = tags or []
        self.condition = condition
        self.priority = priority  # Higher priority fires first

    def header(self) -> str:
        """The "@name[prio] "desc"" prefix as written in the DSL."""
        if not self.name:
            return ""
        text = f"@{self.name}[{self.priority}]" if self.priority != 0 else f"@{self.name}"
        if self.description:
            text += f" \"{self.description}\""
        return text

    def __repr__(self) -> str:
        base = self.header() or "<anonymous>"
        if self.condition is not None:
            base += f" when {format_sexpr(self.condition)}"
        return base


Rule = Tuple[Expr, Expr]

_HEADER_PATTERNS = [
    # @name[priority] "description": ...
    (re.compile(r'@([\w-]+)\[(-?\d+)\]\s+"([^"]+)":\s*(.+)'), ("name", "priority", "description")),
    # @name[priority]: ...
    (re.compile(r'@([\w-]+)\[(-?\d+)\]:\s*(.+)'), ("name", "priority")),
    # @name "description": ...
    (re.compile(r'@([\w-]+)\s+"([^"]+)":\s*(.+)'), ("name", "description")),
    # @name: ...
    (re.compile(r'@([\w-]+):\s*(.+)'), ("name",)),
]


def _find_when(text: str) -> int:
    """Position of a top-level 'when' keyword, or -1."""
    depth = 0
    for i, c in enumerate(text):
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
        elif depth == 0 and text[i:i + 4] == 'when' and (i == 0 or text[i - 1].isspace()):
            after = i + 4
            if after >= len(text) or text[after].isspace():
                return i
    return -1


def parse_rule_line(line: str) -> Optional[Tuple[RuleMetadata, Expr, Expr]]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern => template
        @name[priority]: pattern => template
        @name "description": pattern => template
        @name[priority] "description": pattern => template
        ... => template when condition
        pattern => template

    Returns: (metadata, pattern, template) or None if the line is not a rule
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    metadata = RuleMetadata()
    if line.startswith('@'):
        for regex, fields in _HEADER_PATTERNS:
            match_obj = regex.match(line)
            if match_obj:
                for index, field_name in enumerate(fields, 1):
                    value = match_obj.group(index)
                    setattr(metadata, field_name, int(value) if field_name == "priority" else value)
                line = match_obj.group(len(fields) + 1)
                break

    if '=>' not in line:
        return None

    pattern_str, rest = (part.strip() for part in line.split('=>', 1))
    template_str = rest
    when_pos = _find_when(rest)
    if when_pos >= 0:
        template_str = rest[:when_pos].strip()
        metadata.condition = parse_sexpr(rest[when_pos + 4:].strip())

    pattern = parse_sexpr(pattern_str)
    template = parse_sexpr(template_str)
    if pattern is None or template is None:
        return None
    return (metadata, pattern, template)


def load_rules_from_dsl(text: str) -> List[Tuple[RuleMetadata, Rule]]:
    """
    Load rules from DSL text.

    Lines of the form [groupname] start a group; following rules are
    tagged with it.

    Example:
        [trig]
        @pythagorean: (+ (^ (sin ?x) 2) (^ (cos ?x) 2)) => 1

        [log]
        @ln-exp: (ln (exp ?x)) => :x

    Returns:
        List of (metadata, (pattern, template)) tuples
    """
    rules = []
    current_group = None
    for line in text.split('\n'):
        line_stripped = line.strip()
        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip() or None
            continue
        result = parse_rule_line(line)
        if result:
            metadata, pattern, template = result
            if current_group and current_group not in metadata.tags:
                metadata.tags.append(current_group)
            rules.append((metadata, (pattern, template)))
    return rules


# ============================================================
# Conditions
# ============================================================

def _num(expr: Expr) -> Optional[Num]:
    return expr if isinstance(expr, Num) else None


def _numeric_test(test: Callable) -> Callable[[Expr], bool]:
    def predicate(expr: Expr) -> bool:
        n = _num(expr)
        return n is not None and test(n.value)
    return predicate


def _parity(remainder: int) -> Callable[[Expr], bool]:
    def predicate(expr: Expr) -> bool:
        n = _num(expr)
        if n is None or not n.value.is_integer():
            return False
        return n.value.value % 2 == remainder
    return predicate


PREDICATES: Dict[str, Callable[[Expr], bool]] = {
    "const?": lambda e: isinstance(e, Num),
    "var?": lambda e: isinstance(e, Sym),
    "integer?": _numeric_test(lambda v: v.is_integer()),
    "rational?": _numeric_test(lambda v: v.is_rational()),
    "positive?": _numeric_test(lambda v: v.is_positive()),
    "negative?": _numeric_test(lambda v: v.is_negative()),
    "zero?": _numeric_test(lambda v: v.is_zero()),
    "nonzero?": _numeric_test(lambda v: not v.is_zero()),
    "even?": _parity(0),
    "odd?": _parity(1),
}

_COMPARE = {
    "=": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def holds(condition: Expr) -> bool:
    """
    Decide an instantiated guard.

    Predicates come from PREDICATES; and/or/not combine; relations
    between numbers compare by value (= and != compare any two
    expressions structurally). Other literal numbers are true when
    nonzero; anything else is true.
    """
    if isinstance(condition, Func):
        name = condition.name
        if name == "and":
            return all(holds(a) for a in condition.args)
        if name == "or":
            return any(holds(a) for a in condition.args)
        if name == "not":
            return not holds(condition.args[0])
        if name in PREDICATES:
            return all(PREDICATES[name](a) for a in condition.args)
    if isinstance(condition, Relation):
        lhs, rhs = condition.lhs, condition.rhs
        if isinstance(lhs, Num) and isinstance(rhs, Num):
            return _COMPARE[condition.op](lhs.value, rhs.value)
        if condition.op in ("=", "!="):
            return _COMPARE[condition.op](lhs, rhs)
        return False
    if isinstance(condition, Num):
        return not condition.value.is_zero()
    return True


# ============================================================
# Traces
# ============================================================

class RewriteStep:
    """A single step in a rewriting trace."""

    def __init__(self, rule_index: int, metadata: RuleMetadata, before: Expr, after: Expr):
        self.rule_index = rule_index
        self.metadata = metadata
        self.before = before
        self.after = after

    @property
    def rule_name(self) -> str:
        return self.metadata.name or f"rule[{self.rule_index}]"

    def __repr__(self) -> str:
        return f"{self.rule_name}: {format_sexpr(self.before)} -> {format_sexpr(self.after)}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_index": self.rule_index,
            "rule_name": self.metadata.name,
            "description": self.metadata.description,
            "before": format_sexpr(self.before),
            "after": format_sexpr(self.after),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Formatting options:
        - format("verbose"): full details with before/after (default)
        - format("compact"): single line showing the rule chain
        - format("rules"): just the rule names applied
        - format("chain"): expression transformations as a chain
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, initial: Optional[Expr] = None):
        self.steps: List[RewriteStep] = []
        self.initial = initial
        self.final = initial

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Raises:
            ValueError: For an unknown style
        """
        if style == "compact":
            return (f"{format_sexpr(self.initial)} --[{', '.join(self.rules_applied())}]--> "
                    f"{format_sexpr(self.final)}")
        if style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"
        if style == "chain":
            parts = [format_sexpr(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.rule_name})-->")
                parts.append(format_sexpr(step.after))
            return "\n".join(parts)
        if style == "verbose":
            return repr(self)
        raise ValueError(f"Unknown trace style: {style}")

    def __repr__(self) -> str:
        lines = [f"Initial: {format_sexpr(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            if step.metadata.description:
                lines.append(f"  {i}. {step} ({step.metadata.description})")
            else:
                lines.append(f"  {i}. {step}")
        lines.append(f"Final: {format_sexpr(self.final)}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        return {
            "initial": format_sexpr(self.initial),
            "final": format_sexpr(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.rule_name] = counts.get(step.rule_name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Rule names in order of application."""
        return [s.rule_name for s in self.steps]

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Engine
# ============================================================

class RuleEngine:
    """
    An ordered, grouped set of rewrite rules.

    Rules fire by descending priority, ties in load order. Rewriting
    rebuilds through the normalizing constructors, so results are
    canonical trees (but not simplified: use simplify() for that).

    Example:
        engine = RuleEngine.from_dsl('''
            [log]
            @ln-exp "ln(exp x) = x": (ln (exp ?x)) => :x
            [trig]
            @double-angle: (* 2 (sin ?x) (cos ?x)) => (sin (* 2 :x))
        ''')
        engine(E("(ln (exp y))"))       # => y
        engine.disable_group("trig")
    """

    STRATEGIES = ("bottomup", "topdown", "once")

    def __init__(self):
        self._rules: List[Rule] = []
        self._metadata: List[RuleMetadata] = []
        self._rule_names: Dict[str, int] = {}
        self._disabled_groups: set = set()
        self._version = 0

    def _sort_by_priority(self) -> None:
        """Stable sort by descending priority."""
        self._version += 1
        indexed = sorted(
            range(len(self._rules)),
            key=lambda i: (-self._metadata[i].priority, i),
        )
        self._rules = [self._rules[i] for i in indexed]
        self._metadata = [self._metadata[i] for i in indexed]
        self._rule_names = {}
        for idx, meta in enumerate(self._metadata):
            if meta.name:
                self._rule_names[meta.name] = idx

    def _append(self, rule: Rule, metadata: RuleMetadata) -> None:
        self._rules.append(rule)
        self._metadata.append(metadata)

    # ============================================================
    # Loading
    # ============================================================

    def load_dsl(self, text: str) -> 'RuleEngine':
        """Load rules from DSL text."""
        for metadata, rule in load_rules_from_dsl(text):
            self._append(rule, metadata)
        self._sort_by_priority()
        return self

    def add_rule(self, pattern: Union[str, Expr], template: Union[str, Expr],
                 name: Optional[str] = None, description: Optional[str] = None,
                 condition: Union[str, Expr, None] = None, priority: int = 0,
                 group: Optional[str] = None) -> 'RuleEngine':
        """Add a single rule. Strings are parsed as s-expressions."""
        if isinstance(pattern, str):
            pattern = parse_sexpr(pattern)
        if isinstance(template, str):
            template = parse_sexpr(template)
        if isinstance(condition, str):
            condition = parse_sexpr(condition)
        metadata = RuleMetadata(name=name, description=description, condition=condition,
                                priority=priority, tags=[group] if group else None)
        self._append((pattern, template), metadata)
        self._sort_by_priority()
        return self

    def get_rule(self, name: str) -> Optional[Tuple[Rule, RuleMetadata]]:
        """Get a rule and its metadata by name."""
        if name in self._rule_names:
            idx = self._rule_names[name]
            return self._rules[idx], self._metadata[idx]
        return None

    @property
    def rules(self) -> List[Rule]:
        return self._rules.copy()

    @property
    def version(self) -> int:
        """Counter bumped whenever the rule set or its enabled groups change."""
        return self._version

    def clear(self) -> 'RuleEngine':
        self._version += 1
        self._rules = []
        self._metadata = []
        self._rule_names = {}
        return self

    # ============================================================
    # Group Management
    # ============================================================

    def disable_group(self, group: str) -> 'RuleEngine':
        self._version += 1
        self._disabled_groups.add(group)
        return self

    def enable_group(self, group: str) -> 'RuleEngine':
        self._version += 1
        self._disabled_groups.discard(group)
        return self

    def groups(self) -> set:
        """All group names used by rules."""
        all_groups = set()
        for meta in self._metadata:
            all_groups.update(meta.tags)
        return all_groups

    def _is_rule_active(self, metadata: RuleMetadata, groups: Optional[Sequence[str]] = None) -> bool:
        """
        Whether a rule takes part in this call.

        With explicit groups, ungrouped rules and rules in those groups are
        active; otherwise every rule not in a disabled group is.
        """
        if not metadata.tags:
            return True
        if groups is not None:
            return any(g in groups for g in metadata.tags)
        return not any(g in self._disabled_groups for g in metadata.tags)

    # ============================================================
    # Matching
    # ============================================================

    def match(self, pattern: Union[str, Expr], expr: Expr):
        """
        Match a pattern against an expression.

        Returns Bindings if matched, NoMatch otherwise.

        Example:
            if bindings := engine.match("(+ ?a ?b)", expr):
                print(bindings["a"], bindings["b"])
        """
        if isinstance(pattern, str):
            pattern = parse_sexpr(pattern)
        return wrap_bindings(_match_internal(pattern, expr, []))

    def _check_condition(self, condition: Optional[Expr], bindings) -> bool:
        if condition is None:
            return True
        return holds(instantiate(condition, bindings))

    def _try_rules(self, expr: Expr, groups: Optional[Sequence[str]]):
        """First applicable rule at the root: (index, metadata, result) or None."""
        for rule_idx, (pattern, template) in enumerate(self._rules):
            metadata = self._metadata[rule_idx]
            if not self._is_rule_active(metadata, groups):
                continue
            bindings = _match_internal(pattern, expr, [])
            if bindings == "failed":
                continue
            if not self._check_condition(metadata.condition, bindings):
                continue
            result = instantiate(template, bindings)
            if result != expr:
                return rule_idx, metadata, result
        return None

    def apply_once(self, expr: Expr, groups: Optional[Sequence[str]] = None
                   ) -> Tuple[Expr, Optional[RuleMetadata]]:
        """
        Apply at most one rule at the root of the expression.

        Returns:
            (result, metadata) where metadata is None if no rule applied

        Example:
            result, applied = engine.apply_once(expr)
            if applied:
                print(f"Applied rule: {applied.name}")
        """
        found = self._try_rules(expr, groups)
        if found is None:
            return expr, None
        rule_idx, metadata, result = found
        logger.debug("rule %s: %s -> %s", metadata.name or rule_idx, expr, result)
        return result, metadata

    def rules_matching(self, expr: Expr, check_conditions: bool = True,
                       groups: Optional[Sequence[str]] = None) -> List[Tuple[RuleMetadata, Bindings]]:
        """
        All rules whose pattern matches at the root.

        Useful for understanding why an expression isn't rewriting.
        """
        matching = []
        for rule_idx, (pattern, _) in enumerate(self._rules):
            metadata = self._metadata[rule_idx]
            if not self._is_rule_active(metadata, groups):
                continue
            raw_bindings = _match_internal(pattern, expr, [])
            if raw_bindings == "failed":
                continue
            if check_conditions and not self._check_condition(metadata.condition, raw_bindings):
                continue
            matching.append((metadata, Bindings(raw_bindings)))
        return matching

    # ============================================================
    # Rewriting
    # ============================================================

    def rewrite(self, expr: Expr, trace: bool = False, max_steps: int = 1000,
                strategy: str = "bottomup", groups: Optional[Sequence[str]] = None):
        """
        Rewrite an expression with the loaded rules.

        Args:
            expr: Expression to rewrite
            trace: If True, return (result, RewriteTrace)
            max_steps: Maximum number of rule applications
            strategy: "bottomup" (children first, repeat to fixpoint),
                "topdown" (root first, repeat to fixpoint) or
                "once" (a single rule application anywhere)
            groups: If given, only rules in these groups (and ungrouped rules)

        Returns:
            Rewritten expression, or (expression, trace) if trace=True
        """
        if strategy not in self.STRATEGIES:
            raise ValueError(f"Unknown strategy: {strategy}. "
                             f"Valid options: {', '.join(self.STRATEGIES)}")
        steps: List[RewriteStep] = []
        budget = [max_steps]

        if strategy == "once":
            budget[0] = 1
            result = self._pass(expr, groups, steps, budget, topdown=True)
        else:
            result = expr
            while budget[0] > 0:
                new = self._pass(result, groups, steps, budget, topdown=(strategy == "topdown"))
                if new == result:
                    break
                result = new

        if not trace:
            return result
        trace_obj = RewriteTrace(expr)
        trace_obj.steps = steps
        trace_obj.final = result
        return result, trace_obj

    def _pass(self, expr: Expr, groups, steps: List[RewriteStep], budget: List[int],
              topdown: bool) -> Expr:
        """One traversal; each rule application spends one unit of budget."""
        if budget[0] <= 0:
            return expr

        if topdown:
            rewritten = self._fire(expr, groups, steps, budget)
            if rewritten is not None:
                return rewritten

        current = expr
        if not current.is_atom and current.args:
            new_args = [self._pass(a, groups, steps, budget, topdown) for a in current.args]
            if any(new is not old for new, old in zip(new_args, current.args)):
                current = current.rebuild(new_args)

        if not topdown and budget[0] > 0:
            rewritten = self._fire(current, groups, steps, budget)
            if rewritten is not None:
                return rewritten
        return current

    def _fire(self, expr: Expr, groups, steps: List[RewriteStep], budget: List[int]) -> Optional[Expr]:
        found = self._try_rules(expr, groups)
        if found is None:
            return None
        rule_idx, metadata, result = found
        logger.debug("rule %s: %s -> %s", metadata.name or rule_idx, expr, result)
        steps.append(RewriteStep(rule_idx, metadata, expr, result))
        budget[0] -= 1
        return result

    # ============================================================
    # Introspection and export
    # ============================================================

    def list_rules(self) -> List[str]:
        """All rules in DSL form."""
        result = []
        for (pattern, template), meta in zip(self._rules, self._metadata):
            header = meta.header()
            rule_str = f"{header + ': ' if header else ''}{format_sexpr(pattern)} => {format_sexpr(template)}"
            if meta.condition is not None:
                rule_str += f" when {format_sexpr(meta.condition)}"
            result.append(rule_str)
        return result

    def to_dsl(self, name: Optional[str] = None) -> str:
        """
        Export rules as DSL text, with group headers.

        Templates are written with ?x wildcards, which the reader accepts
        in template position as well.
        """
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")
        current_group = None
        for rule_str, meta in zip(self.list_rules(), self._metadata):
            rule_group = meta.tags[0] if meta.tags else None
            if rule_group != current_group:
                if rule_group:
                    if lines and lines[-1] != "":
                        lines.append("")
                    lines.append(f"[{rule_group}]")
                current_group = rule_group
            lines.append(rule_str)
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleEngine({len(self._rules)} rules)"

    def __call__(self, expr: Expr, **kwargs):
        """engine(expr) is shorthand for engine.rewrite(expr)."""
        return self.rewrite(expr, **kwargs)

    def __iter__(self):
        """Iterate over (rule, metadata) pairs."""
        return iter(zip(self._rules, self._metadata))

    def __contains__(self, name: str) -> bool:
        return name in self._rule_names

    def __getitem__(self, name: str) -> Tuple[Rule, RuleMetadata]:
        if name not in self._rule_names:
            raise KeyError(f"No rule named '{name}'")
        idx = self._rule_names[name]
        return self._rules[idx], self._metadata[idx]

    @classmethod
    def from_dsl(cls, text: str) -> 'RuleEngine':
        return cls().load_dsl(text)

    # Combining engines
    def copy(self) -> 'RuleEngine':
        new_engine = RuleEngine()
        new_engine._rules = self._rules.copy()
        new_engine._metadata = self._metadata.copy()
        new_engine._rule_names = self._rule_names.copy()
        new_engine._disabled_groups = set(self._disabled_groups)
        return new_engine

    def __or__(self, other: 'RuleEngine') -> 'RuleEngine':
        """Union of two engines: engine1 | engine2."""
        result = self.copy()
        result |= other
        return result

    def __ior__(self, other: 'RuleEngine') -> 'RuleEngine':
        for rule, meta in other:
            self._append(rule, meta)
        self._sort_by_priority()
        return self
