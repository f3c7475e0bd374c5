"""
Function registry for algebrum.

Each registered function carries the data the kernel reads:

    derivative      - u -> f'(u), used by the chain rule
    antiderivative  - x -> F(x) with F' = f, used by the integration table
    evaluator       - float -> float numerical evaluation (raises MathError)
    exact           - Number -> Expr folding on exact arguments (or None)
    special values  - literal argument -> value, folded by function()
    parity          - "odd" or "even" (f(-x) = -f(x) / f(-x) = f(x))
    period, domain, range
    identities      - rule DSL lines loaded into the identity engine

The registry is built once at import time and read-only afterwards.
"""

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Tuple

from .errors import BranchCut, DomainError, FeatureNotImplemented, NumericOverflow, Pole
from .expr import (
    Expr, Func, Num, E, HALF, I, MINUS_ONE, ONE, PI, TWO, ZERO,
    add, function, integer, mul, neg, power, rational,
)
from .number import Number

Recipe = Callable[[Expr], Expr]


@dataclass
class FunctionInfo:
    """Registry entry for one function."""

    name: str
    arity: int = 1
    derivative: Optional[Recipe] = None
    antiderivative: Optional[Recipe] = None
    evaluator: Optional[Callable[..., float]] = None
    exact: Optional[Callable[[Number], Optional[Expr]]] = None
    special_values: Dict[Tuple[Expr, ...], Expr] = field(default_factory=dict)
    parity: Optional[str] = None
    period: Optional[Expr] = None
    domain: str = "all reals"
    range: str = "all reals"
    identities: List[str] = field(default_factory=list)

    def special_value(self, args: Tuple[Expr, ...]) -> Optional[Expr]:
        return self.special_values.get(tuple(args))

    def evaluate(self, *values: float) -> float:
        """
        Evaluate numerically.

        Raises:
            FeatureNotImplemented: If no evaluator is registered
            MathError: For domain violations
        """
        if self.evaluator is None:
            raise FeatureNotImplemented(f"numerical evaluation of {self.name}")
        try:
            result = self.evaluator(*values)
        except OverflowError:
            raise NumericOverflow(f"{self.name} overflowed")
        if isinstance(result, complex) or not math.isfinite(result):
            raise NumericOverflow(f"{self.name} produced a non-finite value")
        return result


class FunctionRegistry:
    """Name -> FunctionInfo table."""

    def __init__(self):
        self._functions: Dict[str, FunctionInfo] = {}

    def register(self, info: FunctionInfo) -> FunctionInfo:
        self._functions[info.name] = info
        return info

    def get(self, name: str) -> Optional[FunctionInfo]:
        return self._functions.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __iter__(self):
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def names(self) -> List[str]:
        return sorted(self._functions)


# ============================================================
# Numerical evaluators
# ============================================================

_POLE_TOLERANCE = 1e-12


def _eval_tan(x: float) -> float:
    if abs(math.cos(x)) < _POLE_TOLERANCE:
        raise Pole("tan", x)
    return math.tan(x)


def _eval_cot(x: float) -> float:
    if abs(math.sin(x)) < _POLE_TOLERANCE:
        raise Pole("cot", x)
    return math.cos(x) / math.sin(x)


def _eval_sec(x: float) -> float:
    if abs(math.cos(x)) < _POLE_TOLERANCE:
        raise Pole("sec", x)
    return 1.0 / math.cos(x)


def _eval_csc(x: float) -> float:
    if abs(math.sin(x)) < _POLE_TOLERANCE:
        raise Pole("csc", x)
    return 1.0 / math.sin(x)


def _unit_interval(name: str, f: Callable[[float], float]) -> Callable[[float], float]:
    def evaluate(x: float) -> float:
        if not -1.0 <= x <= 1.0:
            raise DomainError(name, x, f"{name} requires input in [-1, 1] in the real domain")
        return f(x)
    return evaluate


def _outside_unit_interval(name: str, f: Callable[[float], float]) -> Callable[[float], float]:
    def evaluate(x: float) -> float:
        if -1.0 < x < 1.0:
            raise DomainError(name, x, f"{name} requires |input| >= 1 in the real domain")
        return f(x)
    return evaluate


def _eval_arccot(x: float) -> float:
    if x == 0:
        return math.pi / 2
    return math.atan(1.0 / x) if x > 0 else math.atan(1.0 / x) + math.pi


def _eval_ln(x: float) -> float:
    if x == 0:
        raise Pole("ln", x)
    if x < 0:
        raise BranchCut("ln", x)
    return math.log(x)


def _eval_exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        raise NumericOverflow(f"exp({x}) exceeds the float range")


def _eval_gamma(x: float) -> float:
    if x <= 0 and float(x).is_integer():
        raise Pole("gamma", x)
    try:
        return math.gamma(x)
    except OverflowError:
        raise NumericOverflow(f"gamma({x}) exceeds the float range")


def _eval_factorial(x: float) -> float:
    if x < 0 or not float(x).is_integer():
        raise DomainError("factorial", x, "factorial requires a non-negative integer")
    return _eval_gamma(x + 1.0)


def _eval_sign(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


# ============================================================
# Exact folders
# ============================================================

def _exact_abs(n: Number) -> Optional[Expr]:
    return Num(n.abs())


def _exact_sign(n: Number) -> Optional[Expr]:
    return integer(n.sign())


def _exact_factorial(n: Number) -> Optional[Expr]:
    value = n.try_to_int()
    if value is None or value < 0 or value > 1000:
        return None
    return integer(math.factorial(value))


def _exact_gamma(n: Number) -> Optional[Expr]:
    value = n.try_to_int()
    if value is not None and 1 <= value <= 1001:
        return integer(math.factorial(value - 1))
    if n.is_rational() and n.value == Fraction(1, 2):
        return power(PI, HALF)
    return None


# ============================================================
# Registry construction
# ============================================================

def _f(name: str, *args) -> Expr:
    return function(name, args)


def _sq(u: Expr) -> Expr:
    return power(u, TWO)


def _inv(u: Expr) -> Expr:
    return power(u, MINUS_ONE)


def _pi_over(n: int) -> Expr:
    return mul([rational(1, n), PI])


def _build_registry() -> FunctionRegistry:
    registry = FunctionRegistry()
    two_pi = mul([TWO, PI])
    sqrt2_2 = mul([HALF, power(TWO, HALF)])
    sqrt3_2 = mul([HALF, power(integer(3), HALF)])
    sqrt3 = power(integer(3), HALF)

    # Trigonometric -------------------------------------------------
    registry.register(FunctionInfo(
        "sin",
        derivative=lambda u: _f("cos", u),
        antiderivative=lambda x: neg(_f("cos", x)),
        evaluator=math.sin,
        special_values={
            (ZERO,): ZERO, (PI,): ZERO, (_pi_over(2),): ONE,
            (_pi_over(6),): HALF, (_pi_over(4),): sqrt2_2, (_pi_over(3),): sqrt3_2,
        },
        parity="odd", period=two_pi, range="[-1, 1]",
        identities=[
            '@pythagorean[10] "sin^2 + cos^2 = 1": '
            '(+ (^ (sin ?x) 2) (^ (cos ?x) 2) ?rest...) => (+ 1 :rest...)',
            '@pythagorean-scaled[10] "c sin^2 + c cos^2 = c": '
            '(+ (* ?c:const (^ (sin ?x) 2)) (* ?c (^ (cos ?x) 2)) ?rest...) => (+ :c :rest...)',
        ],
    ))
    registry.register(FunctionInfo(
        "cos",
        derivative=lambda u: neg(_f("sin", u)),
        antiderivative=lambda x: _f("sin", x),
        evaluator=math.cos,
        special_values={
            (ZERO,): ONE, (PI,): MINUS_ONE, (_pi_over(2),): ZERO,
            (_pi_over(3),): HALF, (_pi_over(4),): sqrt2_2, (_pi_over(6),): sqrt3_2,
        },
        parity="even", period=two_pi, range="[-1, 1]",
    ))
    registry.register(FunctionInfo(
        "tan",
        derivative=lambda u: _sq(_f("sec", u)),
        antiderivative=lambda x: neg(_f("ln", _f("abs", _f("cos", x)))),
        evaluator=_eval_tan,
        special_values={
            (ZERO,): ZERO, (PI,): ZERO, (_pi_over(4),): ONE,
            (_pi_over(3),): sqrt3, (_pi_over(6),): mul([rational(1, 3), sqrt3]),
        },
        parity="odd", period=PI, domain="x != pi/2 + k*pi",
        identities=[
            '@tan-sec "1 + tan^2 = sec^2": (+ 1 (^ (tan ?x) 2) ?rest...) => (+ (^ (sec :x) 2) :rest...)',
        ],
    ))
    registry.register(FunctionInfo(
        "cot",
        derivative=lambda u: neg(_sq(_f("csc", u))),
        antiderivative=lambda x: _f("ln", _f("abs", _f("sin", x))),
        evaluator=_eval_cot,
        special_values={(_pi_over(2),): ZERO, (_pi_over(4),): ONE},
        parity="odd", period=PI, domain="x != k*pi",
    ))
    registry.register(FunctionInfo(
        "sec",
        derivative=lambda u: mul([_f("sec", u), _f("tan", u)]),
        antiderivative=lambda x: _f("ln", _f("abs", add([_f("sec", x), _f("tan", x)]))),
        evaluator=_eval_sec,
        special_values={(ZERO,): ONE, (PI,): MINUS_ONE},
        parity="even", period=two_pi, domain="x != pi/2 + k*pi",
    ))
    registry.register(FunctionInfo(
        "csc",
        derivative=lambda u: neg(mul([_f("csc", u), _f("cot", u)])),
        antiderivative=lambda x: neg(_f("ln", _f("abs", add([_f("csc", x), _f("cot", x)])))),
        evaluator=_eval_csc,
        special_values={(_pi_over(2),): ONE},
        parity="odd", period=two_pi, domain="x != k*pi",
    ))

    # Inverse trigonometric -----------------------------------------
    one_minus_sq = lambda u: add([ONE, neg(_sq(u))])
    one_plus_sq = lambda u: add([ONE, _sq(u)])
    registry.register(FunctionInfo(
        "arcsin",
        derivative=lambda u: power(one_minus_sq(u), rational(-1, 2)),
        antiderivative=lambda x: add([mul([x, _f("arcsin", x)]), power(one_minus_sq(x), HALF)]),
        evaluator=_unit_interval("arcsin", math.asin),
        special_values={(ZERO,): ZERO, (ONE,): _pi_over(2), (HALF,): _pi_over(6)},
        parity="odd", domain="[-1, 1]", range="[-pi/2, pi/2]",
    ))
    registry.register(FunctionInfo(
        "arccos",
        derivative=lambda u: neg(power(one_minus_sq(u), rational(-1, 2))),
        antiderivative=lambda x: add([mul([x, _f("arccos", x)]), neg(power(one_minus_sq(x), HALF))]),
        evaluator=_unit_interval("arccos", math.acos),
        special_values={(ONE,): ZERO, (ZERO,): _pi_over(2), (MINUS_ONE,): PI, (HALF,): _pi_over(3)},
        domain="[-1, 1]", range="[0, pi]",
    ))
    registry.register(FunctionInfo(
        "arctan",
        derivative=lambda u: _inv(one_plus_sq(u)),
        antiderivative=lambda x: add([
            mul([x, _f("arctan", x)]), neg(mul([HALF, _f("ln", one_plus_sq(x))])),
        ]),
        evaluator=math.atan,
        special_values={(ZERO,): ZERO, (ONE,): _pi_over(4)},
        parity="odd", range="(-pi/2, pi/2)",
    ))
    registry.register(FunctionInfo(
        "arccot",
        derivative=lambda u: neg(_inv(one_plus_sq(u))),
        antiderivative=lambda x: add([
            mul([x, _f("arccot", x)]), mul([HALF, _f("ln", one_plus_sq(x))]),
        ]),
        evaluator=_eval_arccot,
        special_values={(ZERO,): _pi_over(2), (ONE,): _pi_over(4)},
        range="(0, pi)",
    ))
    registry.register(FunctionInfo(
        "arcsec",
        derivative=lambda u: _inv(mul([_f("abs", u), power(add([_sq(u), MINUS_ONE]), HALF)])),
        evaluator=_outside_unit_interval("arcsec", lambda x: math.acos(1.0 / x)),
        special_values={(ONE,): ZERO},
        domain="|x| >= 1", range="[0, pi]",
    ))
    registry.register(FunctionInfo(
        "arccsc",
        derivative=lambda u: neg(_inv(mul([_f("abs", u), power(add([_sq(u), MINUS_ONE]), HALF)]))),
        evaluator=_outside_unit_interval("arccsc", lambda x: math.asin(1.0 / x)),
        special_values={(ONE,): _pi_over(2)},
        parity="odd", domain="|x| >= 1", range="[-pi/2, pi/2]",
    ))

    # Hyperbolic ----------------------------------------------------
    registry.register(FunctionInfo(
        "sinh",
        derivative=lambda u: _f("cosh", u),
        antiderivative=lambda x: _f("cosh", x),
        evaluator=math.sinh,
        special_values={(ZERO,): ZERO},
        parity="odd",
    ))
    registry.register(FunctionInfo(
        "cosh",
        derivative=lambda u: _f("sinh", u),
        antiderivative=lambda x: _f("sinh", x),
        evaluator=math.cosh,
        special_values={(ZERO,): ONE},
        parity="even", range="[1, inf)",
        identities=[
            '@hyperbolic "cosh^2 - sinh^2 = 1": '
            '(+ (^ (cosh ?x) 2) (* -1 (^ (sinh ?x) 2)) ?rest...) => (+ 1 :rest...)',
        ],
    ))
    registry.register(FunctionInfo(
        "tanh",
        derivative=lambda u: add([ONE, neg(_sq(_f("tanh", u)))]),
        antiderivative=lambda x: _f("ln", _f("cosh", x)),
        evaluator=math.tanh,
        special_values={(ZERO,): ZERO},
        parity="odd", range="(-1, 1)",
    ))

    # Exponential and logarithm -------------------------------------
    registry.register(FunctionInfo(
        "exp",
        derivative=lambda u: _f("exp", u),
        antiderivative=lambda x: _f("exp", x),
        evaluator=_eval_exp,
        special_values={(ZERO,): ONE, (ONE,): E},
        period=mul([TWO, PI, I]), range="(0, inf)",
        identities=[
            '@exp-ln "exp(ln x) = x": (exp (ln ?x)) => :x',
            '@exp-product "exp(a) exp(b) = exp(a + b)": '
            '(* (exp ?a) (exp ?b) ?rest...) => (* (exp (+ :a :b)) :rest...)',
            '@exp-power "exp(a)^n = exp(n a)": (^ (exp ?a) ?n) => (exp (* :n :a)) when (integer? :n)',
        ],
    ))
    registry.register(FunctionInfo(
        "ln",
        derivative=lambda u: _inv(u),
        antiderivative=lambda x: add([mul([x, _f("ln", x)]), neg(x)]),
        evaluator=_eval_ln,
        special_values={(ONE,): ZERO, (E,): ONE},
        domain="(0, inf)",
        identities=['@ln-exp "ln(exp x) = x": (ln (exp ?x)) => :x'],
    ))

    # Piecewise-linear ----------------------------------------------
    registry.register(FunctionInfo(
        "abs",
        derivative=lambda u: _f("sign", u),
        antiderivative=lambda x: mul([HALF, x, _f("abs", x)]),
        evaluator=abs,
        exact=_exact_abs,
        parity="even", range="[0, inf)",
        identities=[
            '@abs-sign "sign(x) / |x| = 1/x": (* (sign ?x) (^ (abs ?x) -1) ?rest...) => (* (^ :x -1) :rest...)',
            '@abs-times-sign "|x| sign(x) = x": (* (abs ?x) (sign ?x) ?rest...) => (* :x :rest...)',
        ],
    ))
    registry.register(FunctionInfo(
        "sign",
        derivative=lambda u: ZERO,
        antiderivative=lambda x: _f("abs", x),
        evaluator=_eval_sign,
        exact=_exact_sign,
        parity="odd", range="{-1, 0, 1}",
    ))

    # Special functions ---------------------------------------------
    registry.register(FunctionInfo(
        "gamma",
        derivative=lambda u: mul([_f("gamma", u), Func("digamma", (u,))]),
        evaluator=_eval_gamma,
        exact=_exact_gamma,
        domain="x not in {0, -1, -2, ...}",
    ))
    registry.register(FunctionInfo(
        "factorial",
        evaluator=_eval_factorial,
        exact=_exact_factorial,
        domain="non-negative integers",
    ))
    return registry


REGISTRY = _build_registry()


def get_function(name: str) -> Optional[FunctionInfo]:
    return REGISTRY.get(name)
