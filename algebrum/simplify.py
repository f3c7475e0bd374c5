"""
Simplifier: canonical forms for expression trees.

simplify(expr) is idempotent, deterministic and total. Per head:

    Add     - fold numbers, collect like terms (same core, add coefficients),
              sum matrix values, resolve infinities
    Mul     - fold numeric scalars to the front, collect powers of equal
              bases (commutative products only; noncommutative products
              merge adjacent equal bases and multiply adjacent matrices),
              distribute a number over a lone sum, cancel rational
              functions of one variable by polynomial GCD
    Pow     - power laws, exact numeric folding, perfect-power extraction
              (8^(1/2) = 2*2^(1/2)), e^u -> exp(u), i^n, (a^b)^c, (ab)^n,
              matrix powers
    Func    - special values, parity, exact and float folding
    others  - children simplified, head rebuilt

After a node's structural pass the identity rule set (identities.py) is
tried at its root; the two alternate until nothing changes or
max_simplify_passes is reached.

Arithmetic failures under the simplifier (division by zero, overflow)
become the undefined marker, which absorbs every Add/Mul/Pow/Func it
appears in.

Results are memoized in one process-wide LRU cache keyed by the
expression itself (structural hash and equality) together with the
version of the identity engine, so toggling a rule group is seen at once.
"""

import logging
from fractions import Fraction
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .cache import LRUCache
from .config import get_config
from .errors import ARITH_ERRORS, DomainError, MathError
from .expr import (
    Add, Expr, Func, I, INFINITY, MINUS_ONE, MatrixExpr, Mul, NEG_INFINITY,
    Num, ONE, Pow, Sym, UNDEFINED, ZERO, E, add, as_expr, function, is_one_fast,
    is_undefined, is_zero_fast, mul, neg, power,
)
from .functions import REGISTRY
from .identities import identity_engine
from .number import Number
from .symbol import SymbolKind

logger = logging.getLogger(__name__)

_CACHE = LRUCache(get_config().cache_capacity)


# ============================================================
# Cache control
# ============================================================

def resize_cache(capacity: int) -> None:
    """Change the memoization cache capacity (evicting the oldest entries)."""
    _CACHE.resize(capacity)


def clear_cache() -> None:
    _CACHE.clear()


def cache_info() -> Dict[str, int]:
    """Size, capacity, hits and misses of the memoization cache."""
    return _CACHE.info()


# ============================================================
# Entry points
# ============================================================

def simplify(expr) -> Expr:
    """
    Reduce an expression to canonical form.

    Example:
        x = symbol("x")
        simplify(x + x)                         # => (* 2 x)
        simplify(sin(x)**2 + cos(x)**2)         # => 1
        simplify((x**2 - 1) / (x - 1))          # => (+ 1 x)
    """
    expr = as_expr(expr)
    if expr.is_atom:
        return expr
    # results depend on the identity rules in force when they were computed
    version = identity_engine().version
    cached = _CACHE.get((version, expr))
    if cached is not None:
        return cached
    result = _simplify_fixpoint(expr)
    _CACHE.put((version, expr), result)
    if result != expr and not result.is_atom:
        _CACHE.put((version, result), result)
    return result


def _simplify_fixpoint(expr: Expr) -> Expr:
    passes = get_config().max_simplify_passes
    current = expr
    for _ in range(passes):
        new = _simplify_node(current)
        if not new.is_atom:
            new, _ = identity_engine().apply_once(new)
        if new == current:
            return new
        current = new
    logger.warning("simplify: pass limit (%d) reached for %s", passes, expr)
    return current


def _simplify_node(expr: Expr) -> Expr:
    if expr.is_atom or is_undefined(expr):
        return expr
    try:
        if isinstance(expr, Add):
            return _simplify_add([simplify(t) for t in expr.terms])
        if isinstance(expr, Mul):
            return _simplify_mul([simplify(f) for f in expr.factors])
        if isinstance(expr, Pow):
            return _simplify_pow(simplify(expr.base), simplify(expr.exp))
        if isinstance(expr, Func):
            return _simplify_func(expr.name, [simplify(a) for a in expr.args])
        if not expr.args:
            return expr
        return expr.rebuild([simplify(a) for a in expr.args])
    except ARITH_ERRORS:
        return UNDEFINED


def substitute(expr, mapping: Mapping) -> Expr:
    """
    Replace sub-expressions, then simplify.

    Keys may be expressions, Symbols or symbol names.

    Example:
        substitute(x**2 + 1, {"x": 3})      # => 10
    """
    table = {as_expr(k): as_expr(v) for k, v in mapping.items()}
    return simplify(replace_all(as_expr(expr), table))


def replace_all(expr: Expr, table: Mapping[Expr, Expr]) -> Expr:
    """Structural replacement without simplification."""
    if expr in table:
        return table[expr]
    if expr.is_atom or not expr.args:
        return expr
    new_args = [replace_all(a, table) for a in expr.args]
    if all(new is old for new, old in zip(new_args, expr.args)):
        return expr
    return expr.rebuild(new_args)


def is_zero(expr) -> bool:
    """
    Robust zero test: simplify, then compare with the literal.

    A sum that does not vanish on simplification is expanded once more,
    so powers of sums such as (i*3^(1/2) - 1)^2 cancel termwise.
    """
    reduced = simplify(expr)
    if is_zero_fast(reduced):
        return True
    if not isinstance(reduced, Add):
        return False
    from .polynomial import expand
    return is_zero_fast(expand(reduced))


def is_one(expr) -> bool:
    """Robust one test: simplify, then compare with the literal."""
    return is_one_fast(simplify(expr))


def split_coefficient(expr: Expr) -> Tuple[Number, Expr]:
    """
    Split a term into (numeric coefficient, core).

        3*x*y   -> (3, x*y)
        x       -> (1, x)
        5       -> (5, 1)
    """
    if isinstance(expr, Num):
        return expr.value, ONE
    if isinstance(expr, Mul) and isinstance(expr.factors[0], Num):
        return expr.factors[0].value, mul(expr.factors[1:])
    return Number(1), expr


def _scale(coeff: Number, core: Expr) -> Expr:
    if coeff.is_one():
        return core
    return mul([Num(coeff), core])


# ============================================================
# Add
# ============================================================

def _simplify_add(terms: Sequence[Expr]) -> Expr:
    flat: List[Expr] = []
    for term in terms:
        if isinstance(term, Add):
            flat.extend(term.terms)
        else:
            flat.append(term)
    if any(is_undefined(t) for t in flat):
        return UNDEFINED

    numeric = Number(0)
    pos_inf = neg_inf = False
    matrices: List[MatrixExpr] = []
    like: Dict[Expr, Number] = {}
    for term in flat:
        if isinstance(term, Num):
            numeric = numeric.add(term.value)
        elif term == INFINITY:
            pos_inf = True
        elif term == NEG_INFINITY:
            neg_inf = True
        elif isinstance(term, MatrixExpr):
            matrices.append(term)
        else:
            coeff, core = split_coefficient(term)
            like[core] = like[core].add(coeff) if core in like else coeff

    if pos_inf and neg_inf:
        return UNDEFINED
    if pos_inf:
        return INFINITY
    if neg_inf:
        return NEG_INFINITY

    result = [_scale(coeff, core) for core, coeff in like.items() if not coeff.is_zero()]
    result.extend(_sum_matrices(matrices))
    if not numeric.is_zero() or not result:
        result.append(Num(numeric))
    return add(result)


def _sum_matrices(matrices: List[MatrixExpr]) -> List[Expr]:
    if len(matrices) < 2:
        return list(matrices)
    from .matrix import matrix_add
    total = matrices[0].matrix
    try:
        for term in matrices[1:]:
            total = matrix_add(total, term.matrix)
    except DomainError:
        # Shapes disagree: leave the sum unevaluated
        return list(matrices)
    return [_simplify_matrix(total)]


def _simplify_matrix(m) -> MatrixExpr:
    """Box a matrix value with simplified elements."""
    from .matrix import matrix_from_elements
    return MatrixExpr(matrix_from_elements(m.rows, m.cols, [simplify(e) for e in m.elements()]))


# ============================================================
# Mul
# ============================================================

def _simplify_mul(factors: Sequence[Expr]) -> Expr:
    flat: List[Expr] = []
    for factor in factors:
        if isinstance(factor, Mul):
            flat.extend(factor.factors)
        else:
            flat.append(factor)
    if any(is_undefined(f) for f in flat):
        return UNDEFINED

    commutative = all(f.is_commutative for f in flat)
    coeff = Number(1)
    others: List[Expr] = []
    infinities = 0
    for factor in flat:
        if isinstance(factor, Num):
            coeff = coeff.mul(factor.value)
        elif factor == INFINITY or factor == NEG_INFINITY:
            infinities += 1
            if factor == NEG_INFINITY:
                coeff = coeff.neg()
        else:
            others.append(factor)

    if infinities:
        if coeff.is_zero():
            return UNDEFINED
        if not others:
            return INFINITY if coeff.is_positive() else NEG_INFINITY
        others.append(INFINITY)

    has_matrix = any(isinstance(f, MatrixExpr) for f in others)
    if coeff.is_zero() and not has_matrix:
        return ZERO

    if commutative:
        collected, changed = _collect_powers(others)
    else:
        collected, changed = _merge_adjacent(others)
    if changed:
        return _simplify_mul([Num(coeff)] + collected)

    if len(others) == 1 and isinstance(others[0], MatrixExpr):
        if coeff.is_one():
            return others[0]
        from .matrix import scalar_mul
        return _simplify_matrix(scalar_mul(others[0].matrix, Num(coeff)))

    if coeff.is_zero():
        return mul([Num(coeff)] + others)

    if len(others) == 1 and isinstance(others[0], Add) and not coeff.is_one() and commutative:
        return _simplify_add([_simplify_mul([Num(coeff), t]) for t in others[0].terms])

    if commutative:
        cancelled = _cancel_rational(coeff, others)
        if cancelled is not None:
            return cancelled

    return mul([Num(coeff)] + others)


def _split_power(expr: Expr) -> Tuple[Expr, Expr]:
    if isinstance(expr, Pow):
        return expr.base, expr.exp
    return expr, ONE


def _collect_powers(factors: List[Expr]) -> Tuple[List[Expr], bool]:
    """x^a * x^b -> x^(a+b) for every base (commutative products)."""
    groups: Dict[Expr, List[Expr]] = {}
    for factor in factors:
        base, exp = _split_power(factor)
        groups.setdefault(base, []).append(exp)
    if len(groups) == len(factors):
        return factors, False
    result = []
    for base, exps in groups.items():
        if len(exps) == 1:
            result.append(power(base, exps[0]))
        else:
            result.append(_simplify_pow(base, simplify(add(exps))))
    return result, True


def _merge_adjacent(factors: List[Expr]) -> Tuple[List[Expr], bool]:
    """Merge neighbours only: equal bases add exponents, matrices multiply."""
    result: List[Expr] = []
    changed = False
    for factor in factors:
        if result:
            prev = result[-1]
            if isinstance(prev, MatrixExpr) and isinstance(factor, MatrixExpr):
                from .matrix import matrix_mul
                try:
                    product = matrix_mul(prev.matrix, factor.matrix)
                except DomainError:
                    result.append(factor)
                    continue
                result[-1] = _simplify_matrix(product)
                changed = True
                continue
            prev_base, prev_exp = _split_power(prev)
            base, exp = _split_power(factor)
            if prev_base == base:
                result[-1] = _simplify_pow(base, simplify(add([prev_exp, exp])))
                changed = True
                continue
        result.append(factor)
    return result, changed


def _cancel_rational(coeff: Number, factors: List[Expr]) -> Optional[Expr]:
    """
    Cancel p(x) / q(x) by the polynomial GCD when the product is a
    rational function of one scalar variable.

    Denominators are powers of sums, or powers of a bare symbol when the
    numerator holds a sum ((x^2 + x) / x = x + 1).
    """
    has_sum = any(isinstance(f, Add) for f in factors)
    denominators = [
        f for f in factors
        if isinstance(f, Pow) and (isinstance(f.base, Add) or (has_sum and isinstance(f.base, Sym)))
        and isinstance(f.exp, Num) and f.exp.value.is_integer() and f.exp.value.is_negative()
    ]
    if not denominators:
        return None
    free = frozenset()
    for f in factors:
        free |= f.free_symbols
    if len(free) != 1:
        return None
    var = next(iter(free))
    if var.kind is not SymbolKind.SCALAR:
        return None

    from .polynomial import expand, from_dense, to_dense
    numerators = [f for f in factors if f not in denominators]
    p = to_dense(expand(mul(numerators)), var)
    q = to_dense(expand(mul([power(d.base, Num(d.exp.value.neg())) for d in denominators])), var)
    if p is None or q is None or q.is_zero():
        return None
    g = p.gcd(q)
    if g.degree() < 1:
        return None
    p_quo, _ = divmod(p, g)
    q_quo, _ = divmod(q, g)
    return simplify(mul([Num(coeff), from_dense(p_quo, var), power(from_dense(q_quo, var), MINUS_ONE)]))


# ============================================================
# Pow
# ============================================================

def _simplify_pow(base: Expr, exp: Expr) -> Expr:
    if is_undefined(base) or is_undefined(exp):
        return UNDEFINED
    if is_zero_fast(exp):
        return ONE
    if is_one_fast(exp):
        return base
    if is_one_fast(base):
        return ONE
    if is_zero_fast(base) and isinstance(exp, Num):
        return ZERO if exp.value.is_positive() else UNDEFINED

    if isinstance(base, Num) and isinstance(exp, Num):
        result = base.value.pow(exp.value)
        if result is not None:
            return Num(result)
        return _extract_root(base.value, exp.value)

    if base == E:
        return _simplify_func("exp", [exp])

    if base == I and isinstance(exp, Num) and exp.value.is_integer():
        return (ONE, I, MINUS_ONE, mul([MINUS_ONE, I]))[exp.value.value % 4]

    if isinstance(base, Pow):
        inner_base, inner_exp = base.base, base.exp
        integer_exp = isinstance(exp, Num) and exp.value.is_integer()
        positive_base = isinstance(inner_base, Num) and inner_base.value.is_positive()
        if integer_exp or positive_base:
            return _simplify_pow(inner_base, simplify(mul([inner_exp, exp])))

    if (isinstance(base, Mul) and base.is_commutative
            and isinstance(exp, Num) and exp.value.is_integer()):
        return _simplify_mul([_simplify_pow(f, exp) for f in base.factors])

    if isinstance(base, MatrixExpr) and isinstance(exp, Num) and exp.value.is_integer():
        return _matrix_power(base, exp.value.value)

    return power(base, exp)


def _extract_root(base: Number, exp: Number) -> Expr:
    """
    Normalize n^(p/q) for a positive integer n:
    n^(p/q) = n^m * k^r * rest^(r/q) with p = mq + r, n = k^q * rest.
    """
    if not (base.is_integer() and base.is_positive() and exp.is_rational()):
        return Pow(Num(base), Num(exp))
    p, q = exp.numerator, exp.denominator
    m, r = divmod(p, q)
    outside, inside = _split_perfect_power(base.value, q)
    if outside == 1 and m == 0:
        return Pow(Num(base), Num(exp))
    coeff = Number(base.value).pow(Number(m)).mul(Number(outside).pow(Number(r)))
    if inside == 1 or r == 0:
        return Num(coeff)
    return mul([Num(coeff), Pow(Num(Number(inside)), Num(Number(Fraction(r, q))))])


def _split_perfect_power(n: int, q: int, limit: int = 1000) -> Tuple[int, int]:
    """n = outside^q * inside with outside built from factors below limit."""
    outside, inside = 1, n
    d = 2
    while d <= limit and d ** q <= inside:
        dq = d ** q
        while inside % dq == 0:
            inside //= dq
            outside *= d
        d += 1
    return outside, inside


def _matrix_power(base: MatrixExpr, n: int) -> Expr:
    from .matrix import IdentityMatrix, inverse, matrix_mul
    m = base.matrix
    if m.rows != m.cols:
        return Pow(base, Num(Number(n)))
    if n < 0:
        try:
            m = inverse(m)
        except DomainError:
            return Pow(base, Num(Number(n)))
        except ARITH_ERRORS:
            return UNDEFINED
        n = -n
    result = IdentityMatrix(m.rows)
    factor = m
    while n:
        if n & 1:
            result = matrix_mul(result, factor)
        n >>= 1
        if n:
            factor = matrix_mul(factor, factor)
    return _simplify_matrix(result)


# ============================================================
# Functions
# ============================================================

def _negative_coefficient(expr: Expr) -> bool:
    if isinstance(expr, Num):
        return expr.value.is_negative()
    return (isinstance(expr, Mul) and isinstance(expr.factors[0], Num)
            and expr.factors[0].value.is_negative())


def _simplify_func(name: str, args: Sequence[Expr]) -> Expr:
    if any(is_undefined(a) for a in args):
        return UNDEFINED
    info = REGISTRY.get(name)
    if info is None or len(args) != info.arity:
        return Func(name, args)

    special = info.special_value(tuple(args))
    if special is not None:
        return special

    if info.parity and len(args) == 1 and _negative_coefficient(args[0]):
        inner = _simplify_func(name, [simplify(neg(args[0]))])
        if info.parity == "even":
            return inner
        return _simplify_mul([MINUS_ONE, inner])

    if len(args) == 1 and isinstance(args[0], Num):
        value = args[0].value
        if value.is_exact() and info.exact is not None:
            folded = info.exact(value)
            if folded is not None:
                return folded
        if value.is_float() and info.evaluator is not None:
            try:
                return Num(Number(info.evaluate(value.to_float())))
            except MathError:
                return UNDEFINED

    return function(name, args)
