"""
Symbolic integration.

integrate(expr, var) runs a fixed cascade and stops at the first
strategy that produces a closed form:

    1. table          closed forms (integral_table.py)
    2. linearity      sums termwise, constant factors pulled out,
                      products of sums expanded
    3. substitution   f(g(x)) g'(x) -> F(g(x))
    4. trig           sin^m cos^n by parity, tan/sec/cot/csc reduction
    5. rational       polynomial division, then partial fractions over
                      rational roots and at most one quadratic factor
    6. parts          u dv with u chosen by LIATE
    7. risch          p(x) exp(g(x)) for polynomials p, g, solved by
                      q' + g' q = p

When all of them fail the result is an unevaluated Integral. A strategy
never re-enters itself while it is running (the table, linearity and
trig reductions excepted, since they shrink the integrand); integration
by parts may nest up to max_parts_depth.

Usage:
    x = symbol("x")
    integrate(x, x)                         # => (* 1/2 (^ x 2))
    integrate(x * exp(x**2), x)             # => (* 1/2 (exp (^ x 2)))
    integrate(x**2, x, bounds=(0, 3))       # => 9
"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, List, Optional, Set, Tuple

from .config import get_config
from .derivative import derivative
from .expr import (
    Add, Expr, Func, HALF, Integral, MINUS_ONE, MatrixExpr, Mul, Num, ONE,
    Pow, Relation, Sym, TWO, add, as_expr, as_var, function, mul,
    neg, node_count, power, symbol,
)
from .integral_table import linear_coefficients, lookup, split_constant
from .number import Number
from .polynomial import (
    DensePoly, coefficients, expand, from_dense, rational_roots,
    solve_fraction_system, to_dense,
)
from .simplify import is_zero, replace_all, simplify, substitute

logger = logging.getLogger(__name__)


@dataclass
class IntegrationContext:
    """Recursion bookkeeping for one integrate() call."""

    depth: int = 0
    parts_depth: int = 0
    active: Set[str] = field(default_factory=set)


# ============================================================
# Entry point
# ============================================================

def integrate(expr, var, bounds: Optional[Tuple] = None) -> Expr:
    """
    Integrate expr with respect to var.

    Args:
        expr: Integrand
        var: Integration variable (symbol or name)
        bounds: Optional (lower, upper) for a definite integral

    Returns:
        The simplified antiderivative (without constant), the value of the
        definite integral, or an Integral placeholder when no closed form
        was found

    Example:
        integrate(2*x*cos(x**2), x)     # => (sin (^ x 2))
    """
    expr = simplify(as_expr(expr))
    var = as_var(var)

    if isinstance(expr, MatrixExpr):
        return simplify(expr.rebuild([integrate(e, var, bounds) for e in expr.args]))
    if isinstance(expr, Relation):
        return Relation(expr.op, integrate(expr.lhs, var, bounds), integrate(expr.rhs, var, bounds))

    antiderivative = _integrate(expr, var, IntegrationContext())
    if bounds is None:
        return antiderivative if antiderivative is not None else Integral(expr, var)

    lower, upper = (as_expr(b) for b in bounds)
    if antiderivative is None:
        return Integral(expr, var, (lower, upper))
    return simplify(add([
        substitute(antiderivative, {var: upper}),
        neg(substitute(antiderivative, {var: lower})),
    ]))


def _integrate(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    """Closed-form antiderivative, or None."""
    expr = simplify(expr)
    if var not in expr.free_symbols:
        return simplify(mul([expr, var]))
    config = get_config()
    if ctx.depth >= config.max_integration_depth:
        logger.debug("integrate: depth limit reached for %s", expr)
        return None

    ctx.depth += 1
    try:
        for name, strategy in _STRATEGIES:
            if name in ctx.active:
                continue
            if name == "parts" and ctx.parts_depth >= config.max_parts_depth:
                continue
            guarded = name not in _REENTRANT
            if guarded:
                ctx.active.add(name)
            try:
                result = strategy(expr, var, ctx)
            finally:
                if guarded:
                    ctx.active.discard(name)
            if result is not None:
                logger.debug("integrate: %s solved %s", name, expr)
                return simplify(result)
        return None
    finally:
        ctx.depth -= 1


# ============================================================
# Strategies
# ============================================================

def _by_table(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    return lookup(expr, var)


def _by_linearity(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    if isinstance(expr, Add):
        parts = []
        for term in expr.terms:
            part = _integrate(term, var, ctx)
            if part is None:
                return None
            parts.append(part)
        return add(parts)

    const, core = split_constant(expr, var)
    if const != ONE:
        inner = _integrate(core, var, ctx)
        return None if inner is None else mul([const, inner])

    if isinstance(expr, (Mul, Pow)):
        expanded = expand(expr)
        if isinstance(expanded, Add):
            return _integrate(expanded, var, ctx)
    return None


def _candidates(expr: Expr, var: Sym) -> List[Expr]:
    """Inner expressions g worth trying as u = g(x), largest first."""
    found = []

    def visit(e: Expr) -> None:
        if e.is_atom:
            return
        if isinstance(e, Func):
            for a in e.args:
                found.append(a)
        elif isinstance(e, Pow):
            found.append(e.base)
            found.append(e.exp)
        if isinstance(e, (Func, Pow)) and e not in found:
            found.append(e)
        for a in e.args:
            visit(a)

    visit(expr)
    unique = []
    for g in found:
        if g != var and var in g.free_symbols and g not in unique and g != expr:
            unique.append(g)
    unique.sort(key=node_count, reverse=True)
    return unique


def _by_substitution(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    u = symbol(f"{var.name}__u")
    for g in _candidates(expr, var):
        dg = derivative(g, var)
        if is_zero(dg):
            continue
        quotient = simplify(mul([expr, power(dg, MINUS_ONE)]))
        replaced = simplify(replace_all(quotient, {g: u}))
        if var in replaced.free_symbols:
            continue
        inner = _integrate(replaced, u, ctx)
        if inner is None:
            continue
        return replace_all(inner, {u: g})
    return None


def _integrate_polynomial(expr: Expr, var: Sym) -> Optional[Expr]:
    coeffs = coefficients(expr, var)
    if coeffs is None:
        return None
    return add([
        mul([c, Num(Number(Fraction(1, k + 1))), power(var, k + 1)])
        for k, c in coeffs.items()
    ])


def _sin_cos_powers(expr: Expr) -> Optional[Tuple[Expr, int, int]]:
    """(u, m, n) when expr is sin(u)^m cos(u)^n."""
    factors = expr.factors if isinstance(expr, Mul) else (expr,)
    arg = None
    m = n = 0
    for factor in factors:
        base, k = (factor.base, factor.exp) if isinstance(factor, Pow) else (factor, ONE)
        if not (isinstance(base, Func) and base.name in ("sin", "cos") and len(base.args) == 1):
            return None
        if not (isinstance(k, Num) and k.value.is_integer() and k.value.is_positive()):
            return None
        if arg is None:
            arg = base.args[0]
        elif base.args[0] != arg:
            return None
        if base.name == "sin":
            m += k.value.value
        else:
            n += k.value.value
    return arg, m, n


def _by_trig(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    powers = _sin_cos_powers(expr)
    if powers is not None:
        return _sin_cos(powers, var, ctx)

    if isinstance(expr, Pow) and isinstance(expr.base, Func) and len(expr.base.args) == 1:
        k = expr.exp
        if (expr.base.name in _REDUCTIONS and isinstance(k, Num)
                and k.value.is_integer() and k.value.value >= 3):
            u = expr.base.args[0]
            linear = linear_coefficients(u, var)
            if linear is None:
                return None
            return _REDUCTIONS[expr.base.name](u, k.value.value, linear[0], var, ctx)
    return None


def _sin_cos(powers: Tuple[Expr, int, int], var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    u, m, n = powers
    linear = linear_coefficients(u, var)
    if linear is None:
        return None
    a = linear[0]
    w = symbol(f"{var.name}__w")
    one_minus_w2 = add([ONE, neg(power(w, TWO))])

    if m % 2 == 1:
        # sin^m cos^n dx = -(1 - w^2)^((m-1)/2) w^n dw / a with w = cos(u)
        poly = mul([MINUS_ONE, power(one_minus_w2, (m - 1) // 2), power(w, n)])
        inner = _integrate_polynomial(poly, w)
        return mul([power(a, MINUS_ONE), replace_all(inner, {w: function("cos", [u])})])
    if n % 2 == 1:
        # w = sin(u)
        poly = mul([power(w, m), power(one_minus_w2, (n - 1) // 2)])
        inner = _integrate_polynomial(poly, w)
        return mul([power(a, MINUS_ONE), replace_all(inner, {w: function("sin", [u])})])

    # Both even: power reduction
    cos2u = function("cos", [mul([TWO, u])])
    reduced = mul([
        power(mul([HALF, add([ONE, neg(cos2u)])]), m // 2),
        power(mul([HALF, add([ONE, cos2u])]), n // 2),
    ])
    return _integrate(expand(reduced), var, ctx)


def _reduce_tan(u: Expr, n: int, a: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    rest = _integrate(power(function("tan", [u]), n - 2), var, ctx)
    if rest is None:
        return None
    head = mul([power(function("tan", [u]), n - 1), power(mul([n - 1, a]), MINUS_ONE)])
    return add([head, neg(rest)])


def _reduce_cot(u: Expr, n: int, a: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    rest = _integrate(power(function("cot", [u]), n - 2), var, ctx)
    if rest is None:
        return None
    head = mul([MINUS_ONE, power(function("cot", [u]), n - 1), power(mul([n - 1, a]), MINUS_ONE)])
    return add([head, neg(rest)])


def _reduce_sec(u: Expr, n: int, a: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    rest = _integrate(power(function("sec", [u]), n - 2), var, ctx)
    if rest is None:
        return None
    head = mul([
        power(function("sec", [u]), n - 2), function("tan", [u]),
        power(mul([n - 1, a]), MINUS_ONE),
    ])
    return add([head, mul([Num(Number(Fraction(n - 2, n - 1))), rest])])


def _reduce_csc(u: Expr, n: int, a: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    rest = _integrate(power(function("csc", [u]), n - 2), var, ctx)
    if rest is None:
        return None
    head = mul([
        MINUS_ONE, power(function("csc", [u]), n - 2), function("cot", [u]),
        power(mul([n - 1, a]), MINUS_ONE),
    ])
    return add([head, mul([Num(Number(Fraction(n - 2, n - 1))), rest])])


_REDUCTIONS = {
    "tan": _reduce_tan,
    "cot": _reduce_cot,
    "sec": _reduce_sec,
    "csc": _reduce_csc,
}


# Rational functions ------------------------------------------------

def _as_rational(expr: Expr, var: Sym) -> Optional[Tuple[DensePoly, DensePoly]]:
    """(p, q) with expr = p/q over exact coefficients, or None."""
    factors = expr.factors if isinstance(expr, Mul) else (expr,)
    numerator, denominator = [], []
    for factor in factors:
        if (isinstance(factor, Pow) and isinstance(factor.exp, Num)
                and factor.exp.value.is_integer() and factor.exp.value.is_negative()):
            denominator.append(power(factor.base, Num(factor.exp.value.neg())))
        else:
            numerator.append(factor)
    p = to_dense(mul(numerator), var)
    q = to_dense(mul(denominator), var)
    if p is None or q is None or q.is_zero():
        return None
    return p, q


def _by_rational(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    pair = _as_rational(expr, var)
    if pair is None:
        return None
    p, q = pair
    if q.degree() < 1:
        return None
    quotient, remainder = divmod(p, q)
    terms = []
    if not quotient.is_zero():
        terms.append(_integrate_polynomial(from_dense(quotient, var), var))
    if not remainder.is_zero():
        proper = _partial_fractions(remainder, q, var)
        if proper is None:
            return None
        terms.append(proper)
    return add(terms)


def _linear_factor(r: Fraction) -> DensePoly:
    return DensePoly([-r, 1])


def _frac(c) -> Num:
    return Num(Number(Fraction(c)))


def _partial_fractions(p: DensePoly, q: DensePoly, var: Sym) -> Optional[Expr]:
    """
    Integrate the proper fraction p/q.

    q is split into its rational roots and a remaining factor of degree
    0 or 2; the decomposition coefficients are found by equating
    coefficients and solving exactly over the rationals.
    """
    roots = rational_roots(q)
    rest = q
    for r, multiplicity in roots:
        for _ in range(multiplicity):
            rest = rest // _linear_factor(r)
    if rest.degree() not in (0, 2):
        logger.debug("integrate: denominator factor of degree %d not decomposed", rest.degree())
        return None

    basis: List[DensePoly] = []
    for r, multiplicity in roots:
        for j in range(1, multiplicity + 1):
            factor = DensePoly([1])
            for _ in range(j):
                factor = factor * _linear_factor(r)
            basis.append(q // factor)
    if rest.degree() == 2:
        cofactor = q // rest
        basis.append(cofactor * DensePoly([0, 1]))
        basis.append(cofactor)

    n = q.degree()
    rows = [[b[k] for b in basis] for k in range(n)]
    solution = solve_fraction_system(rows, [p[k] for k in range(n)])
    if solution is None:
        return None

    terms = []
    index = 0
    for r, multiplicity in roots:
        linear = add([var, _frac(-r)])
        for j in range(1, multiplicity + 1):
            coeff = solution[index]
            index += 1
            if coeff == 0:
                continue
            if j == 1:
                terms.append(mul([_frac(coeff), function("ln", [function("abs", [linear])])]))
            else:
                terms.append(mul([_frac(-coeff / (j - 1)), power(linear, 1 - j)]))
    if rest.degree() == 2:
        terms.append(_quadratic_fraction(solution[index], solution[index + 1], rest, var))
    return add(terms)


def _quadratic_fraction(b: Fraction, c: Fraction, quad: DensePoly, var: Sym) -> Expr:
    """Integral of (b x + c) / (alpha x^2 + beta x + gamma) with no rational roots."""
    gamma, beta, alpha = (Fraction(v) for v in quad.coeffs)
    quad_expr = from_dense(quad, var)
    terms = []
    if b != 0:
        terms.append(mul([_frac(b / (2 * alpha)), function("ln", [function("abs", [quad_expr])])]))
    rest = c - b * beta / (2 * alpha)
    if rest != 0:
        disc = 4 * alpha * gamma - beta * beta
        linear = add([mul([_frac(2 * alpha), var]), _frac(beta)])
        if disc > 0:
            root = power(_frac(disc), HALF)
            terms.append(mul([_frac(2 * rest), power(root, MINUS_ONE),
                              function("arctan", [mul([linear, power(root, MINUS_ONE)])])]))
        else:
            root = power(_frac(-disc), HALF)
            ratio = mul([add([linear, neg(root)]), power(add([linear, root]), MINUS_ONE)])
            terms.append(mul([_frac(rest), power(root, MINUS_ONE),
                              function("ln", [function("abs", [ratio])])]))
    return add(terms)


# Integration by parts ----------------------------------------------

_INVERSE_TRIG = ("arcsin", "arccos", "arctan", "arccot", "arcsec", "arccsc")
_TRIG = ("sin", "cos", "tan", "cot", "sec", "csc", "sinh", "cosh", "tanh")


def _liate_rank(factor: Expr, var: Sym) -> Optional[int]:
    """0 log, 1 inverse trig, 2 algebraic, 3 trig, 4 exponential; None otherwise."""
    base = factor.base if isinstance(factor, Pow) and isinstance(factor.base, Func) else factor
    if isinstance(base, Func):
        if base.name == "ln":
            return 0
        if base.name in _INVERSE_TRIG:
            return 1
        if base.name in _TRIG:
            return 3
        if base.name == "exp":
            return 4
        return None
    if isinstance(factor, Pow) and var not in factor.base.free_symbols:
        return 4
    if coefficients(factor, var) is not None:
        return 2
    return None


def _by_parts(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    const, core = split_constant(expr, var)
    factors = core.factors if isinstance(core, Mul) else (core,)
    ranked = []
    for factor in factors:
        rank = _liate_rank(factor, var)
        if rank is None:
            return None
        ranked.append((rank, factor))
    ranked.sort(key=lambda item: item[0])
    rank, u = ranked[0]
    dv = mul([f for _, f in ranked[1:]])
    if dv == ONE and rank > 1:
        return None

    ctx.parts_depth += 1
    try:
        v = _integrate(dv, var, ctx)
        if v is None:
            return None
        du = derivative(u, var)
        rest = _integrate(simplify(mul([v, du])), var, ctx)
        if rest is None:
            return None
        return mul([const, add([mul([u, v]), neg(rest)])])
    finally:
        ctx.parts_depth -= 1


# Risch-lite --------------------------------------------------------

def _by_risch(expr: Expr, var: Sym, ctx: IntegrationContext) -> Optional[Expr]:
    """
    p(x) exp(g(x)): look for a polynomial q with (q exp(g))' = p exp(g),
    i.e. q' + g' q = p. No polynomial solution means the integral is not
    elementary.
    """
    factors = expr.factors if isinstance(expr, Mul) else (expr,)
    exps = [f for f in factors if isinstance(f, Func) and f.name == "exp"]
    if len(exps) != 1:
        return None
    g = to_dense(exps[0].args[0], var)
    p = to_dense(mul([f for f in factors if f is not exps[0]]), var)
    if g is None or p is None or g.degree() < 1:
        return None

    dg = g.derivative()
    d = dg.degree()
    n = p.degree() - d
    if n < 0:
        logger.debug("integrate: %s has no elementary antiderivative", expr)
        return None
    q = [Fraction(0)] * (n + 1)
    lead = Fraction(dg.leading())
    for k in range(n, -1, -1):
        # coefficient of x^(k+d) in q' + g' q
        s = Fraction(p[k + d])
        for j in range(k + 1, n + 1):
            s -= dg[k + d - j] * q[j]
        if k + d + 1 <= n:
            s -= (k + d + 1) * q[k + d + 1]
        q[k] = s / lead
    candidate = DensePoly(q)
    if candidate.derivative() + dg * candidate != p:
        logger.debug("integrate: %s has no elementary antiderivative", expr)
        return None
    return mul([from_dense(candidate, var), exps[0]])


_STRATEGIES: List[Tuple[str, Callable]] = [
    ("table", _by_table),
    ("linearity", _by_linearity),
    ("substitution", _by_substitution),
    ("trig", _by_trig),
    ("rational", _by_rational),
    ("parts", _by_parts),
    ("risch", _by_risch),
]

_REENTRANT = frozenset({"table", "linearity", "trig", "parts"})
