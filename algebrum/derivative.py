"""
Symbolic differentiation.

derivative(expr, var) rewrites the tree syntactically:

    Add         linearity
    Mul         product rule (factor order kept for noncommutative products)
    Pow         general power rule, d(b^e) = b^e (e' ln b + e b'/b)
    Func        chain rule through the registry's derivative recipe
    Integral    an integral in the same variable gives back its integrand;
                definite integrals use the Leibniz rule
    Matrix      elementwise
    Relation    both sides

Functions without a registered recipe differentiate to an unevaluated
Derivative placeholder. Variables listed as dependent are treated as
functions of var, so the chain rule introduces Derivative(y, x) factors:

    derivative(y**2, x, dependent=[y])     # => (* 2 y (derivative y x 1))
"""

import logging
from typing import FrozenSet, Iterable

from .expr import (
    Add, ComplexExpr, Const, Derivative, Expr, Func, Integral, MINUS_ONE,
    MatrixExpr, Mul, Num, ONE, Piecewise, Pow, Relation, Sym, ZERO,
    add, as_expr, as_var, function, is_undefined, mul, neg, power,
)
from .functions import REGISTRY
from .simplify import replace_all, simplify

logger = logging.getLogger(__name__)


def derivative(expr, var, order: int = 1, dependent: Iterable = ()) -> Expr:
    """
    Differentiate expr with respect to var.

    Args:
        expr: Expression to differentiate
        var: Symbol (or symbol name)
        order: Number of times to differentiate
        dependent: Symbols that depend on var

    Returns:
        The simplified derivative

    Raises:
        ValueError: If order is negative

    Example:
        derivative(x**3, x)              # => (* 3 (^ x 2))
        derivative(sin(x**2), x)         # => (* 2 x (cos (^ x 2)))
        derivative(x**3, x, order=2)     # => (* 6 x)
    """
    if order < 0:
        raise ValueError(f"order must be non-negative, got {order}")
    expr = as_expr(expr)
    var = as_var(var)
    deps = frozenset(as_var(d) for d in dependent)
    result = simplify(expr)
    for _ in range(order):
        result = simplify(_diff(result, var, deps))
    return result


def implicit_derivative(equation, dependent, independent) -> Expr:
    """
    dy/dx for y defined implicitly by equation F(x, y) = 0.

    Computed as -F_x / F_y with the partial derivatives taken treating y
    as an independent symbol.

    Example:
        implicit_derivative(eq(x**2 + y**2, 1), y, x)     # => (* -1 x (^ y -1))
    """
    equation = as_expr(equation)
    y = as_var(dependent)
    x = as_var(independent)
    if isinstance(equation, Relation):
        f = add([equation.lhs, neg(equation.rhs)])
    else:
        f = equation
    fx = derivative(f, x)
    fy = derivative(f, y)
    return simplify(mul([MINUS_ONE, fx, power(fy, MINUS_ONE)]))


# ============================================================
# Rules
# ============================================================

def _depends(expr: Expr, var: Sym, deps: FrozenSet[Sym]) -> bool:
    free = expr.free_symbols
    return var in free or bool(free & deps)


def _diff(expr: Expr, var: Sym, deps: FrozenSet[Sym]) -> Expr:
    if is_undefined(expr):
        return expr
    if isinstance(expr, (Num, Const)):
        return ZERO
    if isinstance(expr, Sym):
        if expr == var:
            return ONE
        if expr in deps:
            return Derivative(expr, var, 1)
        return ZERO
    if isinstance(expr, Relation):
        return Relation(expr.op, _diff(expr.lhs, var, deps), _diff(expr.rhs, var, deps))
    if isinstance(expr, MatrixExpr):
        return expr.rebuild([_diff(e, var, deps) for e in expr.args])
    if isinstance(expr, Integral):
        return _diff_integral(expr, var, deps)
    if not _depends(expr, var, deps):
        return ZERO

    if isinstance(expr, Add):
        return add([_diff(t, var, deps) for t in expr.terms])
    if isinstance(expr, Mul):
        return _diff_product(expr.factors, var, deps)
    if isinstance(expr, Pow):
        return _diff_power(expr.base, expr.exp, var, deps)
    if isinstance(expr, Func):
        return _diff_function(expr, var, deps)
    if isinstance(expr, Derivative):
        if expr.var == var:
            return Derivative(expr.expr, var, expr.order + 1)
        return Derivative(expr, var, 1)
    if isinstance(expr, Piecewise):
        pieces = [(_diff(v, var, deps), c) for v, c in expr.pieces]
        otherwise = _diff(expr.otherwise, var, deps) if expr.otherwise is not None else None
        return Piecewise(pieces, otherwise)
    if isinstance(expr, ComplexExpr):
        return expr.rebuild([_diff(expr.real, var, deps), _diff(expr.imag, var, deps)])

    logger.debug("derivative: no rule for %s, leaving placeholder", type(expr).__name__)
    return Derivative(expr, var, 1)


def _diff_product(factors, var: Sym, deps: FrozenSet[Sym]) -> Expr:
    terms = []
    for k, factor in enumerate(factors):
        if not _depends(factor, var, deps):
            continue
        d = _diff(factor, var, deps)
        terms.append(mul(list(factors[:k]) + [d] + list(factors[k + 1:])))
    return add(terms)


def _diff_power(base: Expr, exp: Expr, var: Sym, deps: FrozenSet[Sym]) -> Expr:
    base_varies = _depends(base, var, deps)
    exp_varies = _depends(exp, var, deps)
    if not exp_varies:
        # d(u^n) = n u^(n-1) u'
        return mul([exp, power(base, add([exp, MINUS_ONE])), _diff(base, var, deps)])
    if not base_varies:
        # d(a^v) = a^v ln(a) v'
        return mul([power(base, exp), function("ln", [base]), _diff(exp, var, deps)])
    return mul([
        power(base, exp),
        add([
            mul([_diff(exp, var, deps), function("ln", [base])]),
            mul([exp, _diff(base, var, deps), power(base, MINUS_ONE)]),
        ]),
    ])


def _diff_function(expr: Func, var: Sym, deps: FrozenSet[Sym]) -> Expr:
    info = REGISTRY.get(expr.name)
    if info is None or info.derivative is None or len(expr.args) != 1:
        return Derivative(expr, var, 1)
    u = expr.args[0]
    return mul([info.derivative(u), _diff(u, var, deps)])


def _diff_integral(expr: Integral, var: Sym, deps: FrozenSet[Sym]) -> Expr:
    integrand, ivar = expr.expr, expr.var
    if expr.bounds is None:
        if ivar == var:
            return integrand
        if not _depends(integrand, var, deps):
            return ZERO
        return Integral(_diff(integrand, var, deps), ivar)

    # Leibniz rule
    lower, upper = expr.bounds
    terms = []
    if _depends(upper, var, deps):
        terms.append(mul([replace_all(integrand, {ivar: upper}), _diff(upper, var, deps)]))
    if _depends(lower, var, deps):
        terms.append(mul([MINUS_ONE, replace_all(integrand, {ivar: lower}), _diff(lower, var, deps)]))
    if ivar != var and _depends(integrand, var, deps):
        terms.append(Integral(_diff(integrand, var, deps), ivar, expr.bounds))
    return add(terms)
