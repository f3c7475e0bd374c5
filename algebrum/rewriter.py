"""
Pattern matching and instantiation over expression trees.

Patterns are ordinary expressions that contain pattern nodes:

    Wildcard("x")                - ?x        any expression
    Wildcard("x", "const")       - ?x:const  numbers only
    Wildcard("x", "var")         - ?x:var    symbols only
    Wildcard("x", ("free", "v")) - ?x:free(v) expressions free of v
    Wildcard("x", predicate)     - expressions satisfying predicate
    RestWildcard("x")            - ?x...     remaining arguments (zero or more)
    Exact(expr)                  - exactly expr

A wildcard seen twice must bind the same sub-expression. Sums and scalar
products match commutatively: with up to `permutation_limit` arguments
every assignment is tried, above it a greedy first-fit is used (fast but
not complete). Noncommutative products, powers and functions match
positionally.

Templates are expressions where wildcards stand for their bindings (:x)
and rest wildcards are spliced into the surrounding argument list (:x...).
Instantiation rebuilds through the normalizing constructors.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .config import get_config
from .expr import (
    Add, Exact, Expr, Mul, Num, Pow, RestWildcard, Sym, Wildcard,
    as_expr, symbol,
)

# Internal bindings: list of [name, value] pairs, or "failed"
BindingsType = Union[List[List], str]


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

class Bindings:
    """
    Dict-like wrapper for pattern matching bindings.

        if bindings := matches(expr, pattern):
            print(bindings["a"], bindings["b"])

    Bindings objects are truthy when a match succeeded (even when no
    variable was bound). Failed matches are represented by NoMatch.
    A rest wildcard binds a tuple of expressions.
    """

    __slots__ = ('_dict',)

    def __init__(self, pairs: List[List]):
        """Initialize from list of [name, value] pairs."""
        self._dict = {name: value for name, value in pairs}

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, key: str):
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"Bindings({self._dict})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        if isinstance(other, dict):
            return self._dict == other
        return False

    def to_dict(self) -> Dict[str, Any]:
        return self._dict.copy()

    def pairs(self) -> List[List]:
        """Internal [name, value] pair form, as accepted by instantiate()."""
        return [[name, value] for name, value in self._dict.items()]


class _NoMatch:
    """
    Singleton representing a failed pattern match. NoMatch is falsy.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


NoMatch = _NoMatch()


def wrap_bindings(result: BindingsType) -> Union[Bindings, _NoMatch]:
    """Convert internal bindings to Bindings, or NoMatch if "failed"."""
    if result == "failed":
        return NoMatch
    return Bindings(result)


# ============================================================
# Binding helpers
# ============================================================

def extend_bindings(name: str, value: Any, bindings: BindingsType) -> BindingsType:
    """
    Add name -> value, or check consistency with an existing binding.

    Returns:
        Extended bindings or "failed" on conflict
    """
    if bindings == "failed":
        return "failed"
    for entry in bindings:
        if entry[0] == name:
            return bindings if entry[1] == value else "failed"
    return bindings + [[name, value]]


def lookup(name: str, bindings: BindingsType, default: Any = None) -> Any:
    """Look up a bound value (default when unbound)."""
    if bindings == "failed":
        return default
    for entry in bindings:
        if entry[0] == name:
            return entry[1]
    return default


def free_in(var: Sym, expr: Expr) -> bool:
    """True if var occurs free in expr."""
    return var in expr.free_symbols


def _satisfies(pat: Wildcard, expr: Expr, bindings: BindingsType) -> bool:
    """Check a wildcard's exclusion set and constraint."""
    if pat.exclude and expr in pat.exclude:
        return False
    constraint = pat.constraint
    if constraint is None:
        return True
    if constraint == "const":
        return isinstance(expr, Num)
    if constraint == "var":
        return isinstance(expr, Sym)
    if isinstance(constraint, tuple) and constraint[0] == "free":
        var = lookup(constraint[1], bindings)
        if var is None:
            var = symbol(constraint[1])
        if not isinstance(var, Sym):
            return False
        return not free_in(var, expr)
    if callable(constraint):
        return bool(constraint(expr))
    raise ValueError(f"Unknown wildcard constraint: {constraint!r}")


# ============================================================
# Pattern Matching
# ============================================================

def _head(expr: Expr) -> Tuple:
    """Head data that must agree for two nodes to match structurally."""
    fields = expr._fields()
    args = expr.args
    extra = tuple(f for f in fields if not isinstance(f, Expr) or f not in args)
    return (type(expr),) + extra


def match(pat: Expr, exp: Expr, bindings: BindingsType) -> BindingsType:
    """
    Match a pattern against an expression.

    Args:
        pat: The pattern
        exp: The expression to match against
        bindings: Current bindings ([name, value] pairs)

    Returns:
        Updated bindings on success, "failed" on failure
    """
    if bindings == "failed":
        return "failed"

    if isinstance(pat, Wildcard):
        if not _satisfies(pat, exp, bindings):
            return "failed"
        return extend_bindings(pat.name, exp, bindings)

    if isinstance(pat, Exact):
        return bindings if pat.expr == exp else "failed"

    if isinstance(pat, RestWildcard):
        # Rest patterns only make sense inside an argument list
        return "failed"

    if pat.is_atom or exp.is_atom:
        return bindings if pat == exp else "failed"

    if type(pat) is not type(exp):
        return "failed"

    if isinstance(pat, (Add, Mul)):
        if exp.is_commutative:
            return match_commutative(list(pat.args), list(exp.args), bindings)
        return match_sequence(list(pat.args), list(exp.args), bindings)

    if isinstance(pat, Pow):
        return match(pat.exp, exp.exp, match(pat.base, exp.base, bindings))

    if _head(pat) != _head(exp):
        return "failed"
    return match_sequence(list(pat.args), list(exp.args), bindings)


def match_sequence(pats: List[Expr], items: List[Expr], bindings: BindingsType) -> BindingsType:
    """
    Match argument lists positionally.

    A rest pattern (?x...) must be last and binds the remaining items.
    """
    for index, pat in enumerate(pats):
        if bindings == "failed":
            return "failed"
        if isinstance(pat, RestWildcard):
            if index != len(pats) - 1:
                raise ValueError("Rest pattern (?x...) must be last in an argument list")
            return extend_bindings(pat.name, tuple(items[index:]), bindings)
        if index >= len(items):
            return "failed"
        bindings = match(pat, items[index], bindings)
    if bindings == "failed" or len(items) != len(pats):
        return "failed"
    return bindings


def match_commutative(pats: List[Expr], items: List[Expr], bindings: BindingsType) -> BindingsType:
    """
    Match argument lists in any order.

    Every injective assignment of pattern items to expression items is
    tried when the expression has at most permutation_limit items;
    larger lists use greedy first-fit. Unassigned items go to the rest
    pattern, if there is one, in their original order.
    """
    rests = [p for p in pats if isinstance(p, RestWildcard)]
    if len(rests) > 1:
        raise ValueError("At most one rest pattern (?x...) per argument list")
    rest = rests[0] if rests else None
    fixed = [p for p in pats if not isinstance(p, RestWildcard)]

    if rest is None and len(fixed) != len(items):
        return "failed"
    if len(fixed) > len(items):
        return "failed"

    if len(items) <= get_config().permutation_limit:
        return _match_exhaustive(fixed, items, rest, [False] * len(items), bindings)
    return _match_greedy(fixed, items, rest, bindings)


def _bind_rest(rest: Optional[RestWildcard], items: List[Expr], used: List[bool],
               bindings: BindingsType) -> BindingsType:
    leftovers = tuple(item for item, taken in zip(items, used) if not taken)
    if rest is None:
        return bindings if not leftovers else "failed"
    return extend_bindings(rest.name, leftovers, bindings)


def _match_exhaustive(fixed: List[Expr], items: List[Expr], rest: Optional[RestWildcard],
                      used: List[bool], bindings: BindingsType) -> BindingsType:
    if not fixed:
        return _bind_rest(rest, items, used, bindings)
    pat, remaining = fixed[0], fixed[1:]
    for index, item in enumerate(items):
        if used[index]:
            continue
        attempt = match(pat, item, bindings)
        if attempt == "failed":
            continue
        used[index] = True
        result = _match_exhaustive(remaining, items, rest, used, attempt)
        used[index] = False
        if result != "failed":
            return result
    return "failed"


def _match_greedy(fixed: List[Expr], items: List[Expr], rest: Optional[RestWildcard],
                  bindings: BindingsType) -> BindingsType:
    used = [False] * len(items)
    for pat in fixed:
        for index, item in enumerate(items):
            if used[index]:
                continue
            attempt = match(pat, item, bindings)
            if attempt != "failed":
                used[index] = True
                bindings = attempt
                break
        else:
            return "failed"
    return _bind_rest(rest, items, used, bindings)


def matches(expr, pattern: Expr) -> Union[Bindings, _NoMatch]:
    """
    Match an expression against a pattern.

    Returns:
        Bindings (truthy, dict-like) on success, NoMatch (falsy) otherwise

    Example:
        x = symbol("x")
        b = matches(sin(x)**2, Pow(Func("sin", (Wildcard("u"),)), integer(2)))
        b["u"]   # => x
    """
    return wrap_bindings(match(as_expr(pattern), as_expr(expr), []))


# ============================================================
# Instantiation
# ============================================================

def instantiate(template: Expr, bindings: Union[BindingsType, Bindings]) -> Expr:
    """
    Substitute bindings into a template.

    Wildcards are replaced by their bound value (left as-is when unbound),
    rest wildcards splice their bound tuple into the parent's arguments,
    Exact nodes unwrap. Compound nodes are rebuilt through the
    normalizing constructors.
    """
    if isinstance(bindings, Bindings):
        bindings = bindings.pairs()

    if isinstance(template, Wildcard):
        return lookup(template.name, bindings, template)
    if isinstance(template, RestWildcard):
        value = lookup(template.name, bindings)
        if value is None:
            return template
        raise ValueError(f"Splice :{template.name}... used outside of an argument list")
    if isinstance(template, Exact):
        return template.expr
    if template.is_atom or not template.args:
        return template
    return template.rebuild(instantiate_args(template.args, bindings))


def instantiate_args(args: Sequence[Expr], bindings: BindingsType) -> List[Expr]:
    """Instantiate an argument list, splicing rest bindings."""
    result: List[Expr] = []
    for arg in args:
        if isinstance(arg, RestWildcard):
            value = lookup(arg.name, bindings)
            if value is None:
                result.append(arg)
            else:
                result.extend(value)
        else:
            result.append(instantiate(arg, bindings))
    return result


def replace(expr, pattern: Expr, template: Expr) -> Expr:
    """
    Rewrite every match of pattern in expr by the instantiated template.

    The scan is top-down: where the pattern matches, the template is
    instantiated and its result is not rescanned; otherwise the children
    are processed.
    """
    expr = as_expr(expr)
    bindings = match(pattern, expr, [])
    if bindings != "failed":
        return instantiate(template, bindings)
    if expr.is_atom or not expr.args:
        return expr
    new_args = [replace(arg, pattern, template) for arg in expr.args]
    if all(new is old for new, old in zip(new_args, expr.args)):
        return expr
    return expr.rebuild(new_args)
