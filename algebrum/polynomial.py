"""
Polynomial dispatch.

GCD and division on expression trees blow up quickly. When both inputs
are polynomials in one variable with integer or rational coefficients
they are moved into a dense coefficient vector (DensePoly), the
algorithm runs there, and the result is moved back to a tree:

    classify(expr, x)      INTEGER / RATIONAL / SYMBOLIC (None: not a polynomial)
    to_dense(expr, x)      DensePoly or None
    from_dense(poly, x)    descending terms, trivial parts collapsed

Anything else falls back to Euclid over coefficient dictionaries of
trees, bounded by max_euclid_iterations.

Division conventions:
    polynomial_div(a, 0)   -> (undefined, undefined)
    polynomial_div(0, b)   -> (0, 0)
    polynomial_div(a, a)   -> (1, 0)
"""

import logging
from enum import Enum
from fractions import Fraction
from math import gcd
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config import get_config
from .errors import DivisionByZero
from .expr import (
    Add, Expr, Mul, Num, ONE, Pow, Sym, UNDEFINED, ZERO,
    add, as_expr, as_var, mul, power,
)
from .number import Number
from .simplify import simplify

logger = logging.getLogger(__name__)

Coefficient = Union[int, Fraction]


class CoefficientRing(Enum):
    """Coefficient ring of a polynomial, ordered from most to least special."""
    INTEGER = "integer"
    RATIONAL = "rational"
    SYMBOLIC = "symbolic"


# ============================================================
# Expansion and coefficient extraction
# ============================================================

def expand(expr) -> Expr:
    """
    Distribute products over sums and multiply out small integer powers.

    Example:
        expand((x + 1)**2)       # => (+ 1 (* 2 x) (^ x 2))
    """
    return simplify(_expand(simplify(as_expr(expr))))


def _terms(expr: Expr) -> Tuple[Expr, ...]:
    return expr.terms if isinstance(expr, Add) else (expr,)


def _distribute(left: Expr, right: Expr) -> Expr:
    return simplify(add([mul([a, b]) for a in _terms(left) for b in _terms(right)]))


def _expand(expr: Expr) -> Expr:
    if expr.is_atom or not expr.args:
        return expr
    if isinstance(expr, Add):
        return add([_expand(t) for t in expr.terms])
    if isinstance(expr, Mul):
        result = ONE
        for factor in expr.factors:
            result = _distribute(result, _expand(factor))
        return result
    if isinstance(expr, Pow):
        base = _expand(expr.base)
        exp = expr.exp
        if (isinstance(base, Add) and isinstance(exp, Num) and exp.value.is_integer()
                and 1 < exp.value.value <= get_config().max_expand_power):
            result = base
            for _ in range(exp.value.value - 1):
                result = _distribute(result, base)
            return result
        return power(base, exp)
    return expr.rebuild([_expand(a) for a in expr.args])


def _monomial(term: Expr, var: Sym) -> Optional[Tuple[int, Expr]]:
    """(degree, coefficient) of a product term, or None if not polynomial in var."""
    if var not in term.free_symbols:
        return 0, term
    if term == var:
        return 1, ONE
    if isinstance(term, Pow):
        if term.base == var and isinstance(term.exp, Num):
            n = term.exp.value
            if n.is_integer() and n.is_positive():
                return n.value, ONE
        return None
    if isinstance(term, Mul):
        degree_sum = 0
        coeff = []
        for factor in term.factors:
            part = _monomial(factor, var)
            if part is None:
                return None
            degree_sum += part[0]
            coeff.append(part[1])
        return degree_sum, mul(coeff)
    return None


def coefficients(expr, var) -> Optional[Dict[int, Expr]]:
    """
    Coefficients of expr as a polynomial in var: {degree: coefficient}.

    Returns None when expr is not a polynomial in var. The zero
    polynomial gives an empty dict.
    """
    var = as_var(var)
    expanded = expand(expr)
    result: Dict[int, List[Expr]] = {}
    for term in _terms(expanded):
        part = _monomial(term, var)
        if part is None:
            return None
        result.setdefault(part[0], []).append(part[1])
    coeffs = {}
    for deg, parts in result.items():
        c = simplify(add(parts))
        if not (isinstance(c, Num) and c.value.is_zero()):
            coeffs[deg] = c
    return coeffs


def degree(expr, var) -> Optional[int]:
    """Degree in var (-1 for zero), or None when expr is not a polynomial in var."""
    coeffs = coefficients(expr, var)
    if coeffs is None:
        return None
    return max(coeffs) if coeffs else -1


def classify(expr, var) -> Optional[CoefficientRing]:
    """Coefficient ring of expr in var, or None when it is not a polynomial."""
    coeffs = coefficients(expr, var)
    if coeffs is None:
        return None
    return _ring(coeffs.values())


def _ring(values) -> CoefficientRing:
    ring = CoefficientRing.INTEGER
    for c in values:
        if not isinstance(c, Num) or c.value.is_float():
            return CoefficientRing.SYMBOLIC
        if c.value.is_rational():
            ring = CoefficientRing.RATIONAL
    return ring


# ============================================================
# Dense polynomials
# ============================================================

def _norm(c) -> Coefficient:
    if isinstance(c, Fraction) and c.denominator == 1:
        return c.numerator
    return c


class DensePoly:
    """
    Dense univariate polynomial over the integers or rationals.

    Coefficients are stored in ascending degree: DensePoly([1, 0, 2]) is
    1 + 2x^2. Trailing zeros are stripped, so the zero polynomial has no
    coefficients and degree -1.
    """

    __slots__ = ('coeffs',)

    def __init__(self, coeffs: Sequence[Coefficient]):
        values = [_norm(c) for c in coeffs]
        while values and values[-1] == 0:
            values.pop()
        self.coeffs: Tuple[Coefficient, ...] = tuple(values)

    @classmethod
    def monomial(cls, coeff: Coefficient, deg: int) -> 'DensePoly':
        return cls([0] * deg + [coeff])

    # Structure ---------------------------------------------------

    def degree(self) -> int:
        return len(self.coeffs) - 1

    def is_zero(self) -> bool:
        return not self.coeffs

    def leading(self) -> Coefficient:
        return self.coeffs[-1] if self.coeffs else 0

    def is_integral(self) -> bool:
        return all(isinstance(c, int) for c in self.coeffs)

    def __getitem__(self, k: int) -> Coefficient:
        return self.coeffs[k] if 0 <= k < len(self.coeffs) else 0

    # Arithmetic --------------------------------------------------

    def __add__(self, other: 'DensePoly') -> 'DensePoly':
        n = max(len(self.coeffs), len(other.coeffs))
        return DensePoly([self[k] + other[k] for k in range(n)])

    def __neg__(self) -> 'DensePoly':
        return DensePoly([-c for c in self.coeffs])

    def __sub__(self, other: 'DensePoly') -> 'DensePoly':
        return self + (-other)

    def __mul__(self, other) -> 'DensePoly':
        if not isinstance(other, DensePoly):
            return DensePoly([c * other for c in self.coeffs])
        if self.is_zero() or other.is_zero():
            return DensePoly([])
        result = [0] * (len(self.coeffs) + len(other.coeffs) - 1)
        for i, a in enumerate(self.coeffs):
            for j, b in enumerate(other.coeffs):
                result[i + j] += a * b
        return DensePoly(result)

    __rmul__ = __mul__

    def __divmod__(self, other: 'DensePoly') -> Tuple['DensePoly', 'DensePoly']:
        """
        Division with remainder over the rationals.

        Raises:
            DivisionByZero: If other is the zero polynomial
        """
        if other.is_zero():
            raise DivisionByZero("polynomial division by zero")
        remainder = [Fraction(c) for c in self.coeffs]
        dq = other.degree()
        lead = Fraction(other.leading())
        quotient = [Fraction(0)] * max(len(remainder) - dq, 0)
        for k in range(len(remainder) - 1, dq - 1, -1):
            factor = remainder[k] / lead
            if factor == 0:
                continue
            quotient[k - dq] = factor
            for j, c in enumerate(other.coeffs):
                remainder[k - dq + j] -= factor * c
        return DensePoly(quotient), DensePoly(remainder[:dq] if dq > 0 else [])

    def __floordiv__(self, other: 'DensePoly') -> 'DensePoly':
        return divmod(self, other)[0]

    def __mod__(self, other: 'DensePoly') -> 'DensePoly':
        return divmod(self, other)[1]

    def pseudo_remainder(self, other: 'DensePoly') -> 'DensePoly':
        """A nonzero integer multiple of a mod b, computed without fractions."""
        if other.is_zero():
            raise DivisionByZero("polynomial division by zero")
        remainder = list(self.coeffs)
        db = other.degree()
        lead = other.leading()
        steps = len(remainder) - db
        for _ in range(max(steps, 0)):
            if len(remainder) - 1 < db:
                break
            top = remainder[-1]
            shift = len(remainder) - 1 - db
            remainder = [c * lead for c in remainder]
            for j, c in enumerate(other.coeffs):
                remainder[shift + j] -= top * c
            while remainder and remainder[-1] == 0:
                remainder.pop()
        return DensePoly(remainder)

    # Normalization -----------------------------------------------

    def content(self) -> Fraction:
        """Positive rational c with self / c primitive (integer, coprime)."""
        if self.is_zero():
            return Fraction(0)
        fractions = [Fraction(c) for c in self.coeffs]
        num = 0
        den = 1
        for f in fractions:
            num = gcd(num, f.numerator)
            den = den * f.denominator // gcd(den, f.denominator)
        return Fraction(num, den)

    def primitive_part(self) -> 'DensePoly':
        """Integer, coprime coefficients with a positive leading coefficient."""
        if self.is_zero():
            return self
        c = self.content()
        if self.leading() < 0:
            c = -c
        return DensePoly([Fraction(v) / c for v in self.coeffs])

    def monic(self) -> 'DensePoly':
        if self.is_zero():
            return self
        lead = Fraction(self.leading())
        return DensePoly([Fraction(v) / lead for v in self.coeffs])

    def gcd(self, other: 'DensePoly') -> 'DensePoly':
        """
        Greatest common divisor.

        Integer inputs use the primitive remainder sequence and return
        content * primitive gcd; rational inputs use monic Euclid.
        """
        if self.is_zero():
            return other.primitive_part() if other.is_integral() else other.monic()
        if other.is_zero():
            return self.primitive_part() if self.is_integral() else self.monic()
        if self.is_integral() and other.is_integral():
            c = gcd(self.content().numerator, other.content().numerator)
            a, b = self.primitive_part(), other.primitive_part()
            if a.degree() < b.degree():
                a, b = b, a
            while not b.is_zero():
                r = a.pseudo_remainder(b)
                a, b = b, r.primitive_part()
            return a.primitive_part() * c
        a, b = self.monic(), other.monic()
        while not b.is_zero():
            a, b = b, a % b
        return a.monic()

    # Evaluation --------------------------------------------------

    def evaluate(self, x: Coefficient) -> Coefficient:
        """Horner evaluation."""
        result = 0
        for c in reversed(self.coeffs):
            result = result * x + c
        return _norm(Fraction(result)) if isinstance(result, Fraction) else result

    def derivative(self) -> 'DensePoly':
        return DensePoly([k * c for k, c in enumerate(self.coeffs)][1:])

    # Protocol ----------------------------------------------------

    def __eq__(self, other):
        if not isinstance(other, DensePoly):
            return NotImplemented
        return self.coeffs == other.coeffs

    def __hash__(self):
        return hash(self.coeffs)

    def __repr__(self) -> str:
        return f"DensePoly({list(self.coeffs)})"


def to_dense(expr, var) -> Optional[DensePoly]:
    """DensePoly of expr in var, or None unless every coefficient is an exact number."""
    coeffs = coefficients(expr, var)
    if coeffs is None or _ring(coeffs.values()) is CoefficientRing.SYMBOLIC:
        return None
    n = max(coeffs) + 1 if coeffs else 0
    return DensePoly([coeffs[k].value.value if k in coeffs else 0 for k in range(n)])


def from_dense(poly: DensePoly, var) -> Expr:
    """Tree form: descending terms, c*v^0 -> c, 1*v^k -> v^k, v^1 -> v."""
    var = as_var(var)
    terms = []
    for k in range(poly.degree(), -1, -1):
        c = poly[k]
        if c == 0:
            continue
        terms.append(mul([Num(Number(c)), power(var, Num(Number(k)))]))
    return add(terms)


# ============================================================
# Dispatch: GCD and division
# ============================================================

def _dense_pair(a: Expr, b: Expr, var: Sym) -> Optional[Tuple[DensePoly, DensePoly]]:
    pa, pb = to_dense(a, var), to_dense(b, var)
    if pa is None or pb is None:
        return None
    ring = CoefficientRing.INTEGER if pa.is_integral() and pb.is_integral() else CoefficientRing.RATIONAL
    logger.debug("polynomial dispatch: %s path", ring.value)
    return pa, pb


def polynomial_gcd(a, b, var) -> Expr:
    """
    GCD of two polynomials in var.

    Example:
        polynomial_gcd(x**2 - 1, x - 1, x)      # => (+ -1 x)
    """
    var = as_var(var)
    a, b = simplify(as_expr(a)), simplify(as_expr(b))
    pair = _dense_pair(a, b, var)
    if pair is not None:
        return from_dense(pair[0].gcd(pair[1]), var)
    logger.debug("polynomial dispatch: symbolic path")
    ca, cb = coefficients(a, var), coefficients(b, var)
    if ca is None or cb is None:
        return ONE
    return _dict_to_expr(_symbolic_gcd(ca, cb), var)


def polynomial_div(a, b, var) -> Tuple[Expr, Expr]:
    """
    (quotient, remainder) of a by b as polynomials in var.

    Returns (undefined, undefined) for a zero divisor, (0, 0) for a zero
    dividend and (1, 0) for equal inputs.
    """
    var = as_var(var)
    a, b = simplify(as_expr(a)), simplify(as_expr(b))
    if isinstance(b, Num) and b.value.is_zero():
        return UNDEFINED, UNDEFINED
    if isinstance(a, Num) and a.value.is_zero():
        return ZERO, ZERO
    if a == b:
        return ONE, ZERO
    pair = _dense_pair(a, b, var)
    if pair is not None:
        q, r = divmod(pair[0], pair[1])
        return from_dense(q, var), from_dense(r, var)
    logger.debug("polynomial dispatch: symbolic path")
    ca, cb = coefficients(a, var), coefficients(b, var)
    if ca is None or cb is None:
        return simplify(mul([a, power(b, -1)])), ZERO
    q, r = _symbolic_divmod(ca, cb)
    return _dict_to_expr(q, var), _dict_to_expr(r, var)


def polynomial_quo(a, b, var) -> Expr:
    return polynomial_div(a, b, var)[0]


def polynomial_rem(a, b, var) -> Expr:
    return polynomial_div(a, b, var)[1]


# Symbolic fallback ------------------------------------------------

def _dict_to_expr(coeffs: Dict[int, Expr], var: Sym) -> Expr:
    return simplify(add([mul([c, power(var, k)]) for k, c in coeffs.items()]))


def _symbolic_divmod(a: Dict[int, Expr], b: Dict[int, Expr]
                     ) -> Tuple[Dict[int, Expr], Dict[int, Expr]]:
    remainder = dict(a)
    quotient: Dict[int, Expr] = {}
    db = max(b)
    lead = b[db]
    limit = get_config().max_euclid_iterations
    for _ in range(limit):
        if not remainder or max(remainder) < db:
            return quotient, remainder
        dr = max(remainder)
        factor = simplify(mul([remainder[dr], power(lead, -1)]))
        shift = dr - db
        quotient[shift] = simplify(add([quotient.get(shift, ZERO), factor]))
        for k, c in b.items():
            updated = simplify(add([remainder.get(k + shift, ZERO), mul([-1, factor, c])]))
            if isinstance(updated, Num) and updated.value.is_zero():
                remainder.pop(k + shift, None)
            else:
                remainder[k + shift] = updated
        # A leading term that does not cancel symbolically is forced out
        remainder.pop(dr, None)
    logger.warning("symbolic polynomial division: iteration limit (%d) reached", limit)
    return quotient, remainder


def _symbolic_gcd(a: Dict[int, Expr], b: Dict[int, Expr]) -> Dict[int, Expr]:
    limit = get_config().max_euclid_iterations
    for _ in range(limit):
        if not b:
            break
        _, r = _symbolic_divmod(a, b)
        a, b = b, r
    else:
        logger.warning("symbolic polynomial gcd: iteration limit (%d) reached", limit)
    if not a:
        return {}
    lead = a[max(a)]
    return {k: simplify(mul([c, power(lead, -1)])) for k, c in a.items()}


# ============================================================
# Roots and linear systems over Q
# ============================================================

def _divisors(n: int) -> List[int]:
    n = abs(n)
    small, large = [], []
    d = 1
    while d * d <= n:
        if n % d == 0:
            small.append(d)
            if d * d != n:
                large.append(n // d)
        d += 1
    return small + large[::-1]


def rational_roots(poly: DensePoly) -> List[Tuple[Fraction, int]]:
    """
    Rational roots with multiplicities, in increasing order.

    Candidates come from the rational root theorem on the primitive part.
    """
    if poly.degree() < 1:
        return []
    p = poly.primitive_part()
    roots: List[Tuple[Fraction, int]] = []

    zeros = 0
    while p.coeffs and p.coeffs[0] == 0:
        p = DensePoly(p.coeffs[1:])
        zeros += 1
    if zeros:
        roots.append((Fraction(0), zeros))

    if p.degree() >= 1:
        candidates = set()
        for num in _divisors(p.coeffs[0]):
            for den in _divisors(p.leading()):
                candidates.add(Fraction(num, den))
                candidates.add(Fraction(-num, den))
        for c in sorted(candidates):
            multiplicity = 0
            while p.degree() >= 1 and p.evaluate(c) == 0:
                p, _ = divmod(p, DensePoly([-c, 1]))
                multiplicity += 1
            if multiplicity:
                roots.append((c, multiplicity))
    return sorted(roots)


def solve_fraction_system(rows: Sequence[Sequence[Coefficient]],
                          rhs: Sequence[Coefficient]) -> Optional[List[Fraction]]:
    """
    Solve a square linear system exactly over the rationals (Gauss-Jordan).

    Returns None if the system is singular.
    """
    n = len(rows)
    aug = [[Fraction(v) for v in row] + [Fraction(b)] for row, b in zip(rows, rhs)]
    for col in range(n):
        pivot = next((r for r in range(col, n) if aug[r][col] != 0), None)
        if pivot is None:
            return None
        aug[col], aug[pivot] = aug[pivot], aug[col]
        lead = aug[col][col]
        aug[col] = [v / lead for v in aug[col]]
        for r in range(n):
            if r != col and aug[r][col] != 0:
                factor = aug[r][col]
                aug[r] = [v - factor * w for v, w in zip(aug[r], aug[col])]
    return [aug[r][n] for r in range(n)]
