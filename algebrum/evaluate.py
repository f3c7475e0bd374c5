"""
Numerical evaluation.

evaluate(expr, env) walks the tree bottom-up. Symbols are looked up in
env during the walk; the tree is not rebuilt or simplified first, so a
division by a substituted zero is reported instead of being folded into
the undefined marker.

Exact inputs stay exact wherever the number tower can represent the
result (2^10, 8^(1/3), factorial(5)); everything transcendental becomes
a float. Failures raise the MathError family:

    unbound symbol, undefined marker, infinity    Undefined
    1/x at x = 0                                  DivisionByZero
    ln(0), tan(pi/2)                              Pole
    ln(-1)                                        BranchCut
    (-1)^(1/2), arcsin(2)                         DomainError
    exp(1000)                                     NumericOverflow
    i, matrices, relations, placeholders          FeatureNotImplemented
"""

import math
from typing import Dict, Mapping, Optional

from .errors import DomainError, FeatureNotImplemented, NumericOverflow, Undefined
from .expr import Add, Const, Expr, Func, Mul, Num, Pow, Sym, as_expr, as_var, is_undefined
from .functions import REGISTRY
from .number import Number

_CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "phi": (1.0 + math.sqrt(5.0)) / 2.0,
    "euler_gamma": 0.5772156649015329,
}


def evaluate(expr, env: Optional[Mapping] = None) -> Num:
    """
    Evaluate an expression to a number.

    Args:
        expr: Expression to evaluate
        env: Values for free symbols, keyed by Sym, Symbol or name

    Returns:
        A Num leaf

    Raises:
        MathError: See the module docstring

    Example:
        evaluate(x**2 + 1, {"x": 3})         # => 10
        evaluate(sin(x), {"x": 1.0})         # => 0.8414709848078965
    """
    values = {}
    for key, value in (env or {}).items():
        values[as_var(key)] = as_expr(value)
    return Num(_eval(as_expr(expr), values))


def _eval(expr: Expr, env: Dict[Sym, Expr]) -> Number:
    if isinstance(expr, Num):
        return expr.value
    if isinstance(expr, Sym):
        if expr not in env:
            raise Undefined(expr, f"unbound symbol {expr.name}")
        return _eval(env[expr], {})
    if isinstance(expr, Const):
        return _eval_constant(expr)
    if isinstance(expr, Add):
        total = Number(0)
        for term in expr.terms:
            total = total.add(_eval(term, env))
        return total
    if isinstance(expr, Mul):
        product = Number(1)
        for factor in expr.factors:
            product = product.mul(_eval(factor, env))
        return product
    if isinstance(expr, Pow):
        return _eval_power(_eval(expr.base, env), _eval(expr.exp, env))
    if isinstance(expr, Func):
        return _eval_function(expr, env)
    raise FeatureNotImplemented(f"numerical evaluation of {type(expr).__name__}")


def _eval_constant(expr: Const) -> Number:
    if expr.name in _CONSTANTS:
        return Number(_CONSTANTS[expr.name])
    if expr.name == "i":
        raise FeatureNotImplemented("complex evaluation")
    raise Undefined(expr, "infinite value")


def _eval_power(base: Number, exp: Number) -> Number:
    result = base.pow(exp)
    if result is not None:
        return result
    if base.is_negative():
        raise DomainError("pow", base, "fractional power of a negative number")
    try:
        return Number(math.pow(base.to_float(), exp.to_float()))
    except OverflowError:
        raise NumericOverflow(f"{base}^{exp} exceeds the float range")


def _eval_function(expr: Func, env: Dict[Sym, Expr]) -> Number:
    if is_undefined(expr):
        raise Undefined(expr, "undefined value")
    info = REGISTRY.get(expr.name)
    if info is None:
        raise FeatureNotImplemented(f"numerical evaluation of {expr.name}")
    args = [_eval(a, env) for a in expr.args]

    if all(a.is_exact() for a in args):
        special = info.special_value(tuple(Num(a) for a in args))
        if special is not None:
            return _eval(special, {})
        if info.exact is not None and len(args) == 1:
            folded = info.exact(args[0])
            if folded is not None:
                return _eval(folded, {})

    return Number(info.evaluate(*(a.to_float() for a in args)))
