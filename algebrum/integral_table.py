"""
Integration table.

lookup(expr, var) splits off the factors free of var, then matches the
remaining core against closed forms. Arguments may be linear, a*x + b;
the antiderivative is then divided by a.

    x^n, (ax+b)^n           power rule, ln|ax+b| for n = -1
    c^(ax+b)                c^u / (a ln c)
    f(ax+b)                 registry antiderivative (sin, exp, ln, arctan, ...)
    sin^2 cos^2 tan^2 cot^2 sec^2 csc^2
    sec*tan, csc*cot
    1/(cx^2 + d)            arctan form
    1/sqrt(d - cx^2)        arcsin form
    1/sqrt(cx^2 + d)        logarithmic form
    x e^x, x^2 e^x, x ln x
    e^u sin(v), e^u cos(v)  u, v linear

A miss returns None and the integrator moves on to its other strategies.
"""

from typing import Callable, Dict, Optional, Tuple

from .expr import (
    Expr, Func, HALF, MINUS_ONE, Mul, Num, ONE, Pow, Sym, TWO, ZERO,
    add, as_expr, as_var, div, function, mul, neg, power, rational,
)
from .functions import REGISTRY
from .polynomial import coefficients
from .simplify import simplify


def split_constant(expr: Expr, var: Sym) -> Tuple[Expr, Expr]:
    """
    Split expr into (factor free of var, factor depending on var).

        3*a*x**2    -> (3*a, x**2)
        sin(x)      -> (1, sin(x))
        5           -> (5, 1)
    """
    if var not in expr.free_symbols:
        return expr, ONE
    if isinstance(expr, Mul):
        const = [f for f in expr.factors if var not in f.free_symbols]
        core = [f for f in expr.factors if var in f.free_symbols]
        return mul(const), mul(core)
    return ONE, expr


def linear_coefficients(u: Expr, var: Sym) -> Optional[Tuple[Expr, Expr]]:
    """(a, b) with u = a*var + b and a != 0, or None when u is not linear in var."""
    if u == var:
        return ONE, ZERO
    coeffs = coefficients(u, var)
    if coeffs is None or 1 not in coeffs or max(coeffs) != 1:
        return None
    return coeffs[1], coeffs.get(0, ZERO)


def lookup(expr, var) -> Optional[Expr]:
    """
    Antiderivative from the table, or None.

    Example:
        lookup(3 * x**2, x)         # => (^ x 3)
        lookup(cos(2*x), x)         # => (* 1/2 (sin (* 2 x)))
    """
    expr = as_expr(expr)
    var = as_var(var)
    const, core = split_constant(expr, var)
    if core == ONE:
        return simplify(mul([const, var]))
    result = _lookup_core(core, var)
    if result is None:
        return None
    return simplify(mul([const, result]))


def _lookup_core(core: Expr, var: Sym) -> Optional[Expr]:
    if core == var:
        return mul([HALF, power(var, TWO)])
    if isinstance(core, Func):
        return _function_entry(core, var)
    if isinstance(core, Pow):
        return _power_entry(core, var)
    if isinstance(core, Mul):
        return _product_entry(core, var)
    return None


# ============================================================
# Single functions and powers
# ============================================================

def _ln_abs(u: Expr) -> Expr:
    return function("ln", [function("abs", [u])])


def _function_entry(f: Func, var: Sym) -> Optional[Expr]:
    info = REGISTRY.get(f.name)
    if info is None or info.antiderivative is None or len(f.args) != 1:
        return None
    linear = linear_coefficients(f.args[0], var)
    if linear is None:
        return None
    return div(info.antiderivative(f.args[0]), linear[0])


_SQUARES: Dict[str, Callable[[Expr], Expr]] = {
    "sin": lambda u: add([mul([HALF, u]), mul([rational(-1, 4), function("sin", [mul([TWO, u])])])]),
    "cos": lambda u: add([mul([HALF, u]), mul([rational(1, 4), function("sin", [mul([TWO, u])])])]),
    "tan": lambda u: add([function("tan", [u]), neg(u)]),
    "cot": lambda u: add([neg(function("cot", [u])), neg(u)]),
    "sec": lambda u: function("tan", [u]),
    "csc": lambda u: neg(function("cot", [u])),
}


def _power_entry(p: Pow, var: Sym) -> Optional[Expr]:
    base, exp = p.base, p.exp
    if var not in exp.free_symbols:
        linear = linear_coefficients(base, var)
        if linear is not None:
            a = linear[0]
            if exp == MINUS_ONE:
                return div(_ln_abs(base), a)
            n1 = simplify(add([exp, ONE]))
            return div(power(base, n1), mul([n1, a]))
        if isinstance(base, Func) and exp == TWO and base.name in _SQUARES and len(base.args) == 1:
            linear = linear_coefficients(base.args[0], var)
            if linear is not None:
                return div(_SQUARES[base.name](base.args[0]), linear[0])
            return None
        return _quadratic_entry(base, exp, var)
    if var not in base.free_symbols:
        linear = linear_coefficients(exp, var)
        if linear is not None:
            return div(p, mul([linear[0], function("ln", [base])]))
    return None


def _quadratic_entry(base: Expr, exp: Expr, var: Sym) -> Optional[Expr]:
    """(c x^2 + d)^-1 and (c x^2 + d)^(-1/2) with numeric c, d."""
    coeffs = coefficients(base, var)
    if coeffs is None or set(coeffs) != {0, 2}:
        return None
    c, d = coeffs[2], coeffs[0]
    if not (isinstance(c, Num) and isinstance(d, Num)):
        return None
    cv, dv = c.value, d.value
    if exp == MINUS_ONE and cv.is_positive() and dv.is_positive():
        k = power(Num(cv.div(dv)), HALF)
        return mul([power(Num(cv.mul(dv)), rational(-1, 2)), function("arctan", [mul([k, var])])])
    if exp == rational(-1, 2):
        if cv.is_negative() and dv.is_positive():
            k = power(Num(cv.neg().div(dv)), HALF)
            return mul([power(Num(cv.neg()), rational(-1, 2)), function("arcsin", [mul([k, var])])])
        if cv.is_positive():
            root_c = power(c, HALF)
            inner = add([mul([root_c, var]), power(base, HALF)])
            return mul([power(c, rational(-1, 2)), _ln_abs(inner)])
    return None


# ============================================================
# Products
# ============================================================

def _named(expr: Expr, name: str) -> bool:
    return isinstance(expr, Func) and expr.name == name and len(expr.args) == 1


def _product_entry(m: Mul, var: Sym) -> Optional[Expr]:
    if len(m.factors) != 2:
        return None
    f, g = m.factors

    for first, second, result in (("sec", "tan", 1), ("csc", "cot", -1)):
        for a, b in ((f, g), (g, f)):
            if _named(a, first) and _named(b, second) and a.args == b.args:
                linear = linear_coefficients(a.args[0], var)
                if linear is None:
                    return None
                return div(mul([result, function(first, a.args)]), linear[0])

    for a, b in ((f, g), (g, f)):
        if _named(b, "exp") and b.args[0] == var:
            if a == var:
                return mul([add([var, MINUS_ONE]), b])
            if a == power(var, TWO):
                return mul([add([power(var, TWO), mul([-2, var]), TWO]), b])
        if a == var and _named(b, "ln") and b.args[0] == var:
            x2 = power(var, TWO)
            return add([mul([HALF, x2, b]), mul([rational(-1, 4), x2])])
        if _named(a, "exp") and (_named(b, "sin") or _named(b, "cos")):
            return _exp_trig(a, b, var)
    return None


def _exp_trig(e: Func, t: Func, var: Sym) -> Optional[Expr]:
    """e^u sin(v) and e^u cos(v) for linear u = a x + ..., v = b x + ..."""
    u_lin = linear_coefficients(e.args[0], var)
    v_lin = linear_coefficients(t.args[0], var)
    if u_lin is None or v_lin is None:
        return None
    a, b = u_lin[0], v_lin[0]
    v = t.args[0]
    sin_v = function("sin", [v])
    cos_v = function("cos", [v])
    scale = power(add([power(a, TWO), power(b, TWO)]), MINUS_ONE)
    if t.name == "sin":
        body = add([mul([a, sin_v]), mul([MINUS_ONE, b, cos_v])])
    else:
        body = add([mul([a, cos_v]), mul([b, sin_v])])
    return mul([e, body, scale])
