"""
Equation solvers.

Equations are Relation("=") values or bare expressions meaning expr = 0.
Results are the values of solution.py:

    solve_linear(eq, x)         a x + b = 0
    solve_quadratic(eq, x)      discriminant cases, complex roots as re +- im*i
    solve_polynomial(eq, x)     rational roots first, then Cardano (cubic),
                                Ferrari (quartic) or root_of placeholders
    solve_system(eqs, vars)     square linear systems by Gaussian elimination
    solve(eq, x)                dispatch on degree (or on a list of equations)

None of them raises on mathematical input: equations they cannot handle
(non-polynomial, nonlinear systems, inequalities) give NoSolution.

Example:
    x, y = symbol("x"), symbol("y")
    solve_quadratic(x**2 - 4, x)                       # => Multiple(2, -2)
    solve_system([2*x + y - 5, x - y - 1], [x, y])     # => Multiple(2, 1)
"""

import logging
from fractions import Fraction
from typing import List, Optional, Sequence

from .derivative import derivative
from .expr import (
    Expr, Func, HALF, I, MINUS_ONE, Num, PI, Relation, Sym, TWO, ZERO,
    add, as_expr, as_var, function, integer, mul, neg, power, rational,
)
from .number import Number
from .polynomial import (
    DensePoly, coefficients, from_dense, rational_roots, to_dense,
)
from .simplify import is_zero, simplify, substitute
from .solution import InfiniteSolutions, Multiple, NoSolution, Single

logger = logging.getLogger(__name__)


def _zero_form(equation) -> Optional[Expr]:
    """lhs - rhs for an equation, the expression itself otherwise; None for an inequality."""
    equation = as_expr(equation)
    if isinstance(equation, Relation):
        if equation.op != "=":
            logger.debug("solve: '%s' relations are not solved", equation.op)
            return None
        return simplify(add([equation.lhs, neg(equation.rhs)]))
    return simplify(equation)


def _frac(value) -> Num:
    return Num(Number(Fraction(value)))


def _divide(num: Expr, den: Expr) -> Expr:
    """Exact quotient; numbers divide in the tower."""
    if isinstance(num, Num) and isinstance(den, Num):
        return Num(num.value.div(den.value))
    return simplify(mul([num, power(den, MINUS_ONE)]))


def _sqrt(value: Expr) -> Expr:
    """Square root, taking i out of negative numbers."""
    value = simplify(value)
    if isinstance(value, Num) and value.value.is_negative():
        return simplify(mul([I, power(Num(value.value.neg()), HALF)]))
    return simplify(power(value, HALF))


def root_of(poly, k: int) -> Expr:
    """Placeholder for the k-th root of poly (no closed form computed)."""
    return Func("root_of", (as_expr(poly), integer(k)))


def _result(roots: Sequence[Expr]):
    unique: List[Expr] = []
    for root in roots:
        root = simplify(root)
        if root not in unique:
            unique.append(root)
    if not unique:
        return NoSolution
    if len(unique) == 1:
        return Single(unique[0])
    return Multiple(unique)


# ============================================================
# Linear and quadratic
# ============================================================

def solve_linear(equation, var):
    """
    Solve a x + b = 0.

    a is the derivative in var and b the value at var = 0.

    Returns:
        Single(-b/a), NoSolution (a = 0, b != 0) or InfiniteSolutions (a = b = 0).
        Polynomials of higher degree go to solve_polynomial; anything
        else, and inequalities, give NoSolution.
    """
    var = as_var(var)
    f = _zero_form(equation)
    if f is None:
        return NoSolution
    a = derivative(f, var)
    if var in a.free_symbols:
        coeffs = coefficients(f, var)
        if coeffs and max(coeffs) > 1:
            return solve_polynomial(f, var)
        logger.debug("solve_linear: %s is not polynomial in %s", f, var)
        return NoSolution
    b = substitute(f, {var: ZERO})
    if is_zero(a):
        return InfiniteSolutions if is_zero(b) else NoSolution
    return Single(_divide(simplify(neg(b)), a))


def solve_quadratic(equation, var):
    """
    Solve a x^2 + b x + c = 0.

    Delta > 0 gives Multiple(+ root, - root), Delta = 0 a Single double
    root, Delta < 0 the complex pair (-b +- i sqrt(-Delta)) / 2a.
    Equations of lower degree are handed to solve_linear, higher degrees
    to solve_polynomial. Non-polynomials give NoSolution.
    """
    var = as_var(var)
    f = _zero_form(equation)
    if f is None:
        return NoSolution
    coeffs = coefficients(f, var)
    if coeffs is None:
        logger.debug("solve_quadratic: %s is not polynomial in %s", f, var)
        return NoSolution
    if coeffs and max(coeffs) > 2:
        return solve_polynomial(f, var)
    if 2 not in coeffs:
        return solve_linear(f, var)
    a = coeffs[2]
    b = coeffs.get(1, ZERO)
    c = coeffs.get(0, ZERO)

    disc = simplify(add([power(b, TWO), mul([-4, a, c])]))
    two_a = simplify(mul([TWO, a]))
    if is_zero(disc):
        return Single(_divide(simplify(neg(b)), two_a))
    root = _sqrt(disc)
    plus = _divide(simplify(add([neg(b), root])), two_a)
    minus = _divide(simplify(add([neg(b), neg(root)])), two_a)
    return Multiple((plus, minus))


# ============================================================
# Higher degree
# ============================================================

def solve_polynomial(equation, var):
    """
    Roots of a polynomial equation.

    Rational roots are found by the rational root theorem and deflated;
    the remaining factor is solved in closed form up to degree 4 and left
    as root_of placeholders above that. Non-polynomials give NoSolution.
    """
    var = as_var(var)
    f = _zero_form(equation)
    if f is None:
        return NoSolution
    coeffs = coefficients(f, var)
    if coeffs is None:
        logger.debug("solve_polynomial: %s is not polynomial in %s", f, var)
        return NoSolution
    n = max(coeffs) if coeffs else -1
    if n <= 2:
        if n < 1:
            return InfiniteSolutions if n < 0 else NoSolution
        return solve_quadratic(f, var)

    poly = to_dense(f, var)
    if poly is None:
        logger.debug("solve_polynomial: symbolic coefficients, leaving %d placeholders", n)
        return Multiple([root_of(f, k) for k in range(n)])

    roots: List[Expr] = []
    rest = poly
    for r, multiplicity in rational_roots(poly):
        roots.append(_frac(r))
        for _ in range(multiplicity):
            rest = rest // DensePoly([-r, 1])
    logger.debug("solve_polynomial: %d rational roots, remaining degree %d", len(roots), rest.degree())

    degree = rest.degree()
    if degree in (1, 2):
        roots.extend(solve_quadratic(from_dense(rest, var), var))
    elif degree == 3:
        monic = rest.monic()
        roots.extend(_cubic_roots(*(Fraction(monic[k]) for k in (2, 1, 0))))
    elif degree == 4:
        monic = rest.monic()
        roots.extend(_quartic_roots(*(Fraction(monic[k]) for k in (3, 2, 1, 0)), var=var, poly=rest))
    elif degree >= 5:
        remaining = from_dense(rest, var)
        roots.extend(root_of(remaining, k) for k in range(degree))
    return _result(roots)


def _cube_root(value: Expr, positive: bool) -> Expr:
    """Real cube root of a value whose sign is known."""
    if positive:
        return simplify(power(value, rational(1, 3)))
    return simplify(neg(power(simplify(neg(value)), rational(1, 3))))


def _cubic_roots(a: Fraction, b: Fraction, c: Fraction) -> List[Expr]:
    """
    Roots of x^3 + a x^2 + b x + c by Cardano's method; the first root is real.

    With t = x + a/3 the cubic becomes t^3 + p t + q. Three real roots use
    the trigonometric form.
    """
    p = b - a * a / 3
    q = 2 * a ** 3 / 27 - a * b / 3 + c
    shift = _frac(-a / 3)
    delta = (q / 2) ** 2 + (p / 3) ** 3

    if delta == 0:
        if p == 0:
            ts = [ZERO]
        else:
            ts = [_frac(3 * q / p), _frac(-3 * q / (2 * p))]
    elif delta > 0:
        root = power(_frac(delta), HALF)
        u = _cube_root(add([_frac(-q / 2), root]), q <= 0 or p > 0)
        v = _cube_root(add([_frac(-q / 2), neg(root)]), q < 0 and p < 0)
        real = simplify(add([u, v]))
        half_sum = mul([rational(-1, 2), add([u, v])])
        half_diff = mul([HALF, power(integer(3), HALF), add([u, neg(v)]), I])
        ts = [real, add([half_sum, half_diff]), add([half_sum, neg(half_diff)])]
    else:
        # three real roots: t_k = 2 sqrt(-p/3) cos(arccos(3q/(2p) sqrt(-3/p)) / 3 - 2 pi k / 3)
        amplitude = mul([TWO, power(_frac(-p / 3), HALF)])
        angle = function("arccos", [mul([_frac(3 * q / (2 * p)), power(_frac(-3 / p), HALF)])])
        ts = [
            mul([amplitude, function("cos", [add([mul([rational(1, 3), angle]), mul([rational(-2 * k, 3), PI])])])])
            for k in range(3)
        ]
    return [simplify(add([t, shift])) for t in ts]


def _quartic_roots(a: Fraction, b: Fraction, c: Fraction, d: Fraction,
                   var: Sym, poly: DensePoly) -> List[Expr]:
    """
    Roots of x^4 + a x^3 + b x^2 + c x + d by Ferrari's method.

    With x = y - a/4 the quartic becomes y^4 + p y^2 + q y + r. For q = 0
    it is a quadratic in y^2; otherwise a root m > 0 of the resolvent cubic
    8m^3 + 8p m^2 + (2p^2 - 8r) m - q^2 splits it into two quadratics.
    """
    p = b - 3 * a * a / 8
    q = a ** 3 / 8 - a * b / 2 + c
    r = -3 * a ** 4 / 256 + a * a * b / 16 - a * c / 4 + d
    shift = _frac(-a / 4)

    if q == 0:
        disc = p * p - 4 * r
        if disc < 0:
            logger.debug("solve_polynomial: complex biquadratic, leaving placeholders")
            remaining = from_dense(poly, var)
            return [root_of(remaining, k) for k in range(4)]
        root = power(_frac(disc), HALF)
        ys = []
        for z in (mul([HALF, add([_frac(-p), root])]), mul([HALF, add([_frac(-p), neg(root)])])):
            w = _sqrt(z)
            ys.extend([w, simplify(neg(w))])
        return [simplify(add([y, shift])) for y in ys]

    resolvent = DensePoly([-q * q, 2 * p * p - 8 * r, 8 * p, 8])
    positive = [m for m, _ in rational_roots(resolvent) if m > 0]
    if positive:
        m = _frac(positive[0])
    else:
        m = _cubic_roots(p, p * p / 4 - r, -q * q / 8)[0]

    sqrt_2m = simplify(power(mul([TWO, m]), HALF))
    ys = []
    for s in (1, -1):
        inner = simplify(neg(add([
            _frac(2 * p), mul([TWO, m]),
            mul([s, power(TWO, HALF), _frac(q), power(m, rational(-1, 2))]),
        ])))
        w = _sqrt(inner)
        ys.append(mul([HALF, add([mul([s, sqrt_2m]), w])]))
        ys.append(mul([HALF, add([mul([s, sqrt_2m]), neg(w)])]))
    return [simplify(add([y, shift])) for y in ys]


# ============================================================
# Linear systems
# ============================================================

def solve_system(equations: Sequence, variables: Sequence):
    """
    Solve a square linear system by Gaussian elimination with partial
    pivoting over the number tower.

    Args:
        equations: Equations or expressions (= 0)
        variables: Unknowns, in the order of the returned values

    Returns:
        Multiple(values) for a unique solution, NoSolution for an
        inconsistent or non-square system, InfiniteSolutions when the
        rank is deficient but the system is consistent. Nonlinear
        systems and inequalities give NoSolution.
    """
    variables = [as_var(v) for v in variables]
    forms = [_zero_form(e) for e in equations]
    n = len(forms)
    if n != len(variables) or n == 0 or any(f is None for f in forms):
        return NoSolution

    rows: List[List[Expr]] = []
    zeros = {v: ZERO for v in variables}
    for f in forms:
        row = []
        for v in variables:
            coeff = derivative(f, v)
            if any(w in coeff.free_symbols for w in variables):
                logger.debug("solve_system: %s is not linear", f)
                return NoSolution
            row.append(coeff)
        row.append(simplify(neg(substitute(f, zeros))))
        rows.append(row)

    rank = 0
    for col in range(n):
        candidates = [i for i in range(rank, n) if not is_zero(rows[i][col])]
        if not candidates:
            continue
        if all(isinstance(rows[i][col], Num) for i in candidates):
            pivot = max(candidates, key=lambda i: rows[i][col].value.abs())
        else:
            pivot = candidates[0]
        rows[rank], rows[pivot] = rows[pivot], rows[rank]
        for i in range(rank + 1, n):
            if is_zero(rows[i][col]):
                continue
            factor = _divide(rows[i][col], rows[rank][col])
            rows[i] = [
                simplify(add([x, mul([MINUS_ONE, factor, y])]))
                for x, y in zip(rows[i], rows[rank])
            ]
        rank += 1

    for i in range(rank, n):
        if not is_zero(rows[i][n]):
            logger.debug("solve_system: inconsistent row %d", i)
            return NoSolution
    if rank < n:
        logger.debug("solve_system: rank %d < %d", rank, n)
        return InfiniteSolutions

    values: List[Expr] = [ZERO] * n
    for i in range(n - 1, -1, -1):
        s = simplify(add([rows[i][n]] + [mul([MINUS_ONE, rows[i][k], values[k]]) for k in range(i + 1, n)]))
        values[i] = _divide(s, rows[i][i])
    return Multiple(values)


# ============================================================
# Dispatch
# ============================================================

def solve(equation, var):
    """
    Solve an equation (or a list of equations) for var (or a list of vars).

    Equations that are not polynomial in var, and inequalities, give
    NoSolution.
    """
    if isinstance(equation, (list, tuple)):
        variables = var if isinstance(var, (list, tuple)) else [var]
        return solve_system(equation, variables)
    var = as_var(var)
    f = _zero_form(equation)
    if f is None:
        return NoSolution
    coeffs = coefficients(f, var)
    if coeffs is None:
        logger.debug("solve: %s is not polynomial in %s", f, var)
        return NoSolution
    n = max(coeffs) if coeffs else -1
    if n < 0:
        return InfiniteSolutions
    if n == 0:
        return NoSolution
    if n == 1:
        return solve_linear(f, var)
    if n == 2:
        return solve_quadratic(f, var)
    return solve_polynomial(f, var)
