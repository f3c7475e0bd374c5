"""
Matrix engine.

Matrix values hold expression elements and come in structured variants
with compact storage:

    DenseMatrix                 rows x cols elements
    IdentityMatrix(n)           nothing stored
    ZeroMatrix(r, c)            nothing stored
    DiagonalMatrix(diag)        n elements
    ScalarMatrix(n, value)      one element
    UpperTriangularMatrix       packed rows, row i holds columns i..n-1
    LowerTriangularMatrix       packed rows, row i holds columns 0..i
    SymmetricMatrix             packed upper triangle
    PermutationMatrix(perm)     P[i, j] = 1 iff j == perm[i]

matrix(rows) builds a value and narrows it once: all-zero -> Zero,
identity -> Identity, off-diagonal zero -> Diagonal, constant diagonal
-> Scalar, else Dense.

Operations dispatch on the variants for closed forms (trace of a scalar
matrix, determinant of a triangular one, ...) and fall back to exact
element arithmetic through the simplifier. Errors:

    DomainError     dimension mismatch, non-square where square is required
    DivisionByZero  singular matrix during decomposition, inversion or solve
"""

from fractions import Fraction
from typing import List, Optional, Sequence, Tuple, Union

from .errors import DivisionByZero, DomainError, FeatureNotImplemented
from .expr import (
    Expr, MINUS_ONE, Num, ONE, ZERO, add, as_expr, is_one_fast, is_zero_fast,
    mul, neg, power,
)
from .number import Number
from .polynomial import coefficients, expand
from .simplify import is_zero, simplify

Rows = List[List[Expr]]


# ============================================================
# Matrix values
# ============================================================

class Matrix:
    """
    Base class of matrix values.

    Elements are read with m[i, j]; equality compares shape and elements,
    so a DenseMatrix equal to the identity equals IdentityMatrix(n).
    """

    rows: int
    cols: int

    def _get(self, i: int, j: int) -> Expr:
        raise NotImplementedError

    def __getitem__(self, index: Tuple[int, int]) -> Expr:
        i, j = index
        if not (0 <= i < self.rows and 0 <= j < self.cols):
            raise IndexError(f"index ({i}, {j}) out of range for {self.rows}x{self.cols} matrix")
        return self._get(i, j)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def is_square(self) -> bool:
        return self.rows == self.cols

    def elements(self) -> List[Expr]:
        """All elements in row-major order."""
        return [self._get(i, j) for i in range(self.rows) for j in range(self.cols)]

    def to_rows(self) -> Rows:
        return [[self._get(i, j) for j in range(self.cols)] for i in range(self.rows)]

    def row(self, i: int) -> List[Expr]:
        return [self._get(i, j) for j in range(self.cols)]

    def column(self, j: int) -> List[Expr]:
        return [self._get(i, j) for i in range(self.rows)]

    @property
    def T(self) -> 'Matrix':
        return transpose(self)

    def __add__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return matrix_add(self, other)

    def __matmul__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return matrix_mul(self, other)

    def __mul__(self, other):
        if isinstance(other, Matrix):
            return NotImplemented
        return scalar_mul(self, other)

    __rmul__ = __mul__

    def __neg__(self):
        return scalar_mul(self, MINUS_ONE)

    def __sub__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return matrix_add(self, scalar_mul(other, MINUS_ONE))

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and self.elements() == other.elements()

    def __hash__(self):
        return hash((self.rows, self.cols, tuple(self.elements())))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_rows()})"


class DenseMatrix(Matrix):
    """General matrix stored row by row."""

    def __init__(self, rows: Sequence[Sequence]):
        data = [[as_expr(e) for e in row] for row in rows]
        if not data or not data[0]:
            raise DomainError("matrix", reason="a matrix needs at least one row and one column")
        width = len(data[0])
        if any(len(row) != width for row in data):
            raise DomainError("matrix", reason="rows have different lengths")
        self._data = data
        self.rows = len(data)
        self.cols = width

    def _get(self, i, j):
        return self._data[i][j]


class IdentityMatrix(Matrix):
    def __init__(self, n: int):
        _check_size(n)
        self.rows = self.cols = n

    def _get(self, i, j):
        return ONE if i == j else ZERO

    def __repr__(self) -> str:
        return f"IdentityMatrix({self.rows})"


class ZeroMatrix(Matrix):
    def __init__(self, rows: int, cols: Optional[int] = None):
        _check_size(rows)
        self.rows = rows
        self.cols = rows if cols is None else cols
        _check_size(self.cols)

    def _get(self, i, j):
        return ZERO

    def __repr__(self) -> str:
        return f"ZeroMatrix({self.rows}, {self.cols})"


class DiagonalMatrix(Matrix):
    def __init__(self, diagonal: Sequence):
        self.diagonal = [as_expr(e) for e in diagonal]
        _check_size(len(self.diagonal))
        self.rows = self.cols = len(self.diagonal)

    def _get(self, i, j):
        return self.diagonal[i] if i == j else ZERO

    def __repr__(self) -> str:
        return f"DiagonalMatrix({self.diagonal})"


class ScalarMatrix(Matrix):
    """value * I."""

    def __init__(self, n: int, value):
        _check_size(n)
        self.rows = self.cols = n
        self.value = as_expr(value)

    def _get(self, i, j):
        return self.value if i == j else ZERO

    def __repr__(self) -> str:
        return f"ScalarMatrix({self.rows}, {self.value})"


class UpperTriangularMatrix(Matrix):
    """Packed upper triangle: packed[i] holds columns i..n-1 of row i."""

    def __init__(self, packed: Sequence[Sequence]):
        self.packed = [[as_expr(e) for e in row] for row in packed]
        n = len(self.packed)
        _check_size(n)
        if any(len(row) != n - i for i, row in enumerate(self.packed)):
            raise DomainError("matrix", reason="malformed packed upper triangle")
        self.rows = self.cols = n

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence]) -> 'UpperTriangularMatrix':
        return cls([list(row[i:]) for i, row in enumerate(rows)])

    def _get(self, i, j):
        return self.packed[i][j - i] if j >= i else ZERO


class LowerTriangularMatrix(Matrix):
    """Packed lower triangle: packed[i] holds columns 0..i of row i."""

    def __init__(self, packed: Sequence[Sequence]):
        self.packed = [[as_expr(e) for e in row] for row in packed]
        n = len(self.packed)
        _check_size(n)
        if any(len(row) != i + 1 for i, row in enumerate(self.packed)):
            raise DomainError("matrix", reason="malformed packed lower triangle")
        self.rows = self.cols = n

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence]) -> 'LowerTriangularMatrix':
        return cls([list(row[:i + 1]) for i, row in enumerate(rows)])

    def _get(self, i, j):
        return self.packed[i][j] if j <= i else ZERO


class SymmetricMatrix(Matrix):
    """Packed upper triangle mirrored below the diagonal."""

    def __init__(self, packed: Sequence[Sequence]):
        self.packed = [[as_expr(e) for e in row] for row in packed]
        n = len(self.packed)
        _check_size(n)
        if any(len(row) != n - i for i, row in enumerate(self.packed)):
            raise DomainError("matrix", reason="malformed packed symmetric matrix")
        self.rows = self.cols = n

    def _get(self, i, j):
        if j < i:
            i, j = j, i
        return self.packed[i][j - i]


class PermutationMatrix(Matrix):
    """Row i has its single 1 in column perm[i]."""

    def __init__(self, perm: Sequence[int]):
        self.perm = list(perm)
        _check_size(len(self.perm))
        if sorted(self.perm) != list(range(len(self.perm))):
            raise DomainError("matrix", value=self.perm, reason="not a permutation")
        self.rows = self.cols = len(self.perm)

    def _get(self, i, j):
        return ONE if self.perm[i] == j else ZERO

    def sign(self) -> int:
        """+1 for an even permutation, -1 for an odd one."""
        seen = [False] * len(self.perm)
        sign = 1
        for start in range(len(self.perm)):
            if seen[start]:
                continue
            length = 0
            k = start
            while not seen[k]:
                seen[k] = True
                k = self.perm[k]
                length += 1
            if length % 2 == 0:
                sign = -sign
        return sign

    def __repr__(self) -> str:
        return f"PermutationMatrix({self.perm})"


def _check_size(n: int) -> None:
    if not isinstance(n, int) or n < 1:
        raise DomainError("matrix", value=n, reason="dimensions must be positive integers")


# ============================================================
# Construction
# ============================================================

def matrix(rows: Sequence[Sequence]) -> Matrix:
    """
    Build a matrix value and narrow it to the tightest variant.

    Example:
        matrix([[1, 0], [0, 1]])    # => IdentityMatrix(2)
        matrix([[2, 0], [0, 3]])    # => DiagonalMatrix([2, 3])
    """
    return _narrow(DenseMatrix(rows))


def matrix_from_elements(rows: int, cols: int, elements: Sequence) -> Matrix:
    """Build from row-major elements (narrowed like matrix())."""
    elements = list(elements)
    if len(elements) != rows * cols:
        raise DomainError("matrix", reason=f"expected {rows * cols} elements, got {len(elements)}")
    return matrix([elements[i * cols:(i + 1) * cols] for i in range(rows)])


def _narrow(m: Matrix) -> Matrix:
    elements = m.elements()
    if all(is_zero_fast(e) for e in elements):
        return ZeroMatrix(m.rows, m.cols)
    if not m.is_square:
        return m
    n = m.rows
    off_diagonal_zero = all(is_zero_fast(m[i, j]) for i in range(n) for j in range(n) if i != j)
    if not off_diagonal_zero:
        return m
    diagonal = [m[i, i] for i in range(n)]
    if all(is_one_fast(d) for d in diagonal):
        return IdentityMatrix(n)
    if all(d == diagonal[0] for d in diagonal):
        return ScalarMatrix(n, diagonal[0])
    return DiagonalMatrix(diagonal)


def _require_square(m: Matrix, operation: str) -> None:
    if not m.is_square:
        raise DomainError(operation, value=m.shape, reason="matrix must be square")


_DIAGONAL_FAMILY = (IdentityMatrix, ScalarMatrix, DiagonalMatrix)

# Relative size below which a diagonal entry of a float R counts as zero
_RANK_TOLERANCE = 1e-12


def _diagonal(m: Matrix) -> List[Expr]:
    return [m[i, i] for i in range(m.rows)]


# ============================================================
# Basic operations
# ============================================================

def transpose(m: Matrix) -> Matrix:
    if isinstance(m, (IdentityMatrix, ScalarMatrix, DiagonalMatrix, SymmetricMatrix)):
        return m
    if isinstance(m, ZeroMatrix):
        return ZeroMatrix(m.cols, m.rows)
    if isinstance(m, UpperTriangularMatrix):
        return LowerTriangularMatrix([[m[j, i] for j in range(i + 1)] for i in range(m.rows)])
    if isinstance(m, LowerTriangularMatrix):
        return UpperTriangularMatrix([[m[j, i] for j in range(i, m.rows)] for i in range(m.rows)])
    if isinstance(m, PermutationMatrix):
        inverse_perm = [0] * len(m.perm)
        for i, j in enumerate(m.perm):
            inverse_perm[j] = i
        return PermutationMatrix(inverse_perm)
    return DenseMatrix([m.column(j) for j in range(m.cols)])


def trace(m: Matrix) -> Expr:
    _require_square(m, "trace")
    if isinstance(m, IdentityMatrix):
        return Num(Number(m.rows))
    if isinstance(m, ZeroMatrix):
        return ZERO
    if isinstance(m, ScalarMatrix):
        return simplify(mul([m.rows, m.value]))
    if isinstance(m, PermutationMatrix):
        return Num(Number(sum(1 for i, j in enumerate(m.perm) if i == j)))
    return simplify(add(_diagonal(m)))


def determinant(m: Matrix) -> Expr:
    """
    Determinant.

    Closed forms for the structured variants; numeric matrices use
    exact elimination. Symbolic matrices up to 3x3 are expanded by
    cofactors, larger ones go through fraction-free (Bareiss) elimination.
    """
    _require_square(m, "determinant")
    if isinstance(m, IdentityMatrix):
        return ONE
    if isinstance(m, ZeroMatrix):
        return ZERO
    if isinstance(m, ScalarMatrix):
        return simplify(power(m.value, m.rows))
    if isinstance(m, PermutationMatrix):
        return Num(Number(m.sign()))
    if isinstance(m, (DiagonalMatrix, UpperTriangularMatrix, LowerTriangularMatrix)):
        return simplify(mul(_diagonal(m)))
    rows = m.to_rows()
    if all(isinstance(e, Num) for row in rows for e in row):
        return Num(_numeric_determinant([[e.value for e in row] for row in rows]))
    if len(rows) <= 3:
        return simplify(_cofactor_determinant(rows))
    return simplify(_bareiss_determinant(rows))


def _numeric_determinant(rows: List[List[Number]]) -> Number:
    """Gaussian elimination with partial pivoting over the number tower."""
    n = len(rows)
    a = [list(row) for row in rows]
    det = Number(1)
    for k in range(n):
        pivot = max(range(k, n), key=lambda r: a[r][k].abs())
        if a[pivot][k].is_zero():
            return Number(0)
        if pivot != k:
            a[k], a[pivot] = a[pivot], a[k]
            det = det.neg()
        det = det.mul(a[k][k])
        for r in range(k + 1, n):
            factor = a[r][k].div(a[k][k])
            if factor.is_zero():
                continue
            for c in range(k, n):
                a[r][c] = a[r][c].sub(factor.mul(a[k][c]))
    return det


def _cofactor_determinant(rows: Rows) -> Expr:
    n = len(rows)
    if n == 1:
        return rows[0][0]
    if n == 2:
        return add([mul([rows[0][0], rows[1][1]]), mul([MINUS_ONE, rows[0][1], rows[1][0]])])
    terms = []
    for j, entry in enumerate(rows[0]):
        if is_zero_fast(entry):
            continue
        minor = [row[:j] + row[j + 1:] for row in rows[1:]]
        sign = ONE if j % 2 == 0 else MINUS_ONE
        terms.append(mul([sign, entry, _cofactor_determinant(minor)]))
    return add(terms)


def _bareiss_determinant(rows: Rows) -> Expr:
    """
    Fraction-free elimination: after step k every entry below and right
    of the pivot is a (k+1)x(k+1) minor, so the division by the previous
    pivot is exact and the last entry is the determinant.
    """
    n = len(rows)
    a = [list(row) for row in rows]
    negate = False
    prev = ONE
    for k in range(n - 1):
        if is_zero(a[k][k]):
            swap = next((r for r in range(k + 1, n) if not is_zero(a[r][k])), None)
            if swap is None:
                return ZERO
            a[k], a[swap] = a[swap], a[k]
            negate = not negate
        for i in range(k + 1, n):
            for j in range(k + 1, n):
                cross = add([mul([a[i][j], a[k][k]]), mul([MINUS_ONE, a[i][k], a[k][j]])])
                a[i][j] = _exact_quotient(cross, prev)
        prev = a[k][k]
    det = a[n - 1][n - 1]
    return neg(det) if negate else det


def _exact_quotient(num: Expr, den: Expr) -> Expr:
    quotient = _divide_polynomials(expand(num), expand(den))
    if quotient is None:
        return simplify(mul([num, power(den, MINUS_ONE)]))
    return quotient


def _divide_polynomials(num: Expr, den: Expr) -> Optional[Expr]:
    """
    Exact multivariate quotient num / den, or None when den does not
    divide num as a polynomial.

    Long division in the first free symbol of den; each leading
    coefficient is divided recursively in the remaining symbols.
    """
    if is_zero_fast(num):
        return ZERO
    free = sorted(den.free_symbols, key=lambda s: s.name)
    if not free:
        return expand(mul([num, power(den, MINUS_ONE)]))
    var = free[0]
    cn, cd = coefficients(num, var), coefficients(den, var)
    if not cn or not cd:
        return None
    db = max(cd)
    lead = cd[db]
    remainder = dict(cn)
    quotient: List[Expr] = []
    while remainder and max(remainder) >= db:
        dr = max(remainder)
        factor = _divide_polynomials(remainder[dr], lead)
        if factor is None:
            return None
        shift = dr - db
        quotient.append(mul([factor, power(var, shift)]))
        for k, c in cd.items():
            updated = expand(add([remainder.get(k + shift, ZERO), mul([MINUS_ONE, factor, c])]))
            if is_zero_fast(updated):
                remainder.pop(k + shift, None)
            else:
                remainder[k + shift] = updated
        if dr in remainder:
            return None
    if remainder:
        return None
    return expand(add(quotient))


def matrix_add(a: Matrix, b: Matrix) -> Matrix:
    if a.shape != b.shape:
        raise DomainError("matrix_add", value=(a.shape, b.shape), reason="shapes differ")
    if isinstance(a, ZeroMatrix):
        return b
    if isinstance(b, ZeroMatrix):
        return a
    if isinstance(a, _DIAGONAL_FAMILY) and isinstance(b, _DIAGONAL_FAMILY):
        return _narrow(DiagonalMatrix([simplify(add([x, y])) for x, y in zip(_diagonal(a), _diagonal(b))]))
    return matrix([
        [simplify(add([a[i, j], b[i, j]])) for j in range(a.cols)]
        for i in range(a.rows)
    ])


def matrix_mul(a: Matrix, b: Matrix) -> Matrix:
    if a.cols != b.rows:
        raise DomainError("matrix_mul", value=(a.shape, b.shape), reason="inner dimensions differ")
    if isinstance(a, IdentityMatrix):
        return b
    if isinstance(b, IdentityMatrix):
        return a
    if isinstance(a, ZeroMatrix) or isinstance(b, ZeroMatrix):
        return ZeroMatrix(a.rows, b.cols)
    if isinstance(a, ScalarMatrix):
        return scalar_mul(b, a.value)
    if isinstance(b, ScalarMatrix):
        return scalar_mul(a, b.value)
    if isinstance(a, DiagonalMatrix) and isinstance(b, DiagonalMatrix):
        return _narrow(DiagonalMatrix([simplify(mul([x, y])) for x, y in zip(a.diagonal, b.diagonal)]))
    if isinstance(a, PermutationMatrix):
        if isinstance(b, PermutationMatrix):
            return PermutationMatrix([b.perm[a.perm[i]] for i in range(a.rows)])
        return matrix([b.row(a.perm[i]) for i in range(a.rows)])
    return matrix([
        [simplify(add([mul([a[i, k], b[k, j]]) for k in range(a.cols)])) for j in range(b.cols)]
        for i in range(a.rows)
    ])


def scalar_mul(m: Matrix, c) -> Matrix:
    c = simplify(as_expr(c))
    if is_zero_fast(c) or isinstance(m, ZeroMatrix):
        return ZeroMatrix(m.rows, m.cols)
    if is_one_fast(c):
        return m
    if isinstance(m, IdentityMatrix):
        return ScalarMatrix(m.rows, c)
    if isinstance(m, ScalarMatrix):
        return ScalarMatrix(m.rows, simplify(mul([c, m.value])))
    if isinstance(m, DiagonalMatrix):
        return _narrow(DiagonalMatrix([simplify(mul([c, d])) for d in m.diagonal]))
    return matrix([[simplify(mul([c, e])) for e in row] for row in m.to_rows()])


def _divide(num: Expr, den: Expr) -> Expr:
    """Exact quotient; numbers divide in the tower."""
    if isinstance(num, Num) and isinstance(den, Num):
        return Num(num.value.div(den.value))
    return simplify(mul([num, power(den, MINUS_ONE)]))


def _is_numeric(e: Expr) -> bool:
    return isinstance(e, Num)


# ============================================================
# Decompositions
# ============================================================

def lu_decompose(m: Matrix) -> Tuple[PermutationMatrix, LowerTriangularMatrix, UpperTriangularMatrix]:
    """
    LU decomposition with partial pivoting: P A = L U, L unit lower.

    Numeric columns pivot on the largest magnitude, symbolic ones on the
    first entry that does not simplify to zero.

    Raises:
        DomainError: If the matrix is not square
        DivisionByZero: If the matrix is singular
    """
    _require_square(m, "lu_decompose")
    n = m.rows
    u = [[simplify(e) for e in row] for row in m.to_rows()]
    lower = [[ZERO] * n for _ in range(n)]
    perm = list(range(n))
    for k in range(n):
        candidates = [r for r in range(k, n) if not is_zero_fast(u[r][k])]
        if not candidates:
            raise DivisionByZero(f"singular matrix: no pivot in column {k}")
        if all(_is_numeric(u[r][k]) for r in candidates):
            pivot = max(candidates, key=lambda r: u[r][k].value.abs())
        else:
            pivot = candidates[0]
        if pivot != k:
            u[k], u[pivot] = u[pivot], u[k]
            lower[k], lower[pivot] = lower[pivot], lower[k]
            perm[k], perm[pivot] = perm[pivot], perm[k]
        for r in range(k + 1, n):
            if is_zero_fast(u[r][k]):
                continue
            factor = _divide(u[r][k], u[k][k])
            lower[r][k] = factor
            for c in range(k, n):
                u[r][c] = simplify(add([u[r][c], mul([MINUS_ONE, factor, u[k][c]])]))
    for i in range(n):
        lower[i][i] = ONE
    return (
        PermutationMatrix(perm),
        LowerTriangularMatrix.from_rows(lower),
        UpperTriangularMatrix.from_rows(u),
    )


def cholesky(m: Matrix) -> LowerTriangularMatrix:
    """
    Cholesky factor L with L L^T = A (square roots appear in L).

    Raises:
        DomainError: If A is not square, not symmetric, or a numeric pivot
            is not positive
    """
    _require_square(m, "cholesky")
    if not is_symmetric(m):
        raise DomainError("cholesky", reason="matrix is not symmetric")
    n = m.rows
    lower = [[ZERO] * n for _ in range(n)]
    for j in range(n):
        d = simplify(add([m[j, j]] + [mul([MINUS_ONE, power(lower[j][k], 2)]) for k in range(j)]))
        if isinstance(d, Num) and not d.value.is_positive():
            raise DomainError("cholesky", value=d, reason="matrix is not positive definite")
        lower[j][j] = simplify(power(d, Num(Number(Fraction(1, 2)))))
        for i in range(j + 1, n):
            s = simplify(add([m[i, j]] + [mul([MINUS_ONE, lower[i][k], lower[j][k]]) for k in range(j)]))
            lower[i][j] = _divide(s, lower[j][j])
    return LowerTriangularMatrix.from_rows(lower)


def ldl_decompose(m: Matrix) -> Tuple[LowerTriangularMatrix, DiagonalMatrix]:
    """
    Root-free Cholesky: A = L D L^T with L unit lower and D diagonal.

    Raises:
        DomainError: If A is not square, not symmetric, or a pivot is not
            a positive number
    """
    _require_square(m, "ldl_decompose")
    if not is_symmetric(m):
        raise DomainError("ldl_decompose", reason="matrix is not symmetric")
    n = m.rows
    lower = [[ONE if i == j else ZERO for j in range(n)] for i in range(n)]
    d: List[Expr] = []
    for j in range(n):
        pivot = simplify(add([m[j, j]] + [
            mul([MINUS_ONE, power(lower[j][k], 2), d[k]]) for k in range(j)
        ]))
        if not (isinstance(pivot, Num) and pivot.value.is_positive()):
            raise DomainError("ldl_decompose", value=pivot, reason="matrix is not positive definite")
        d.append(pivot)
        for i in range(j + 1, n):
            s = simplify(add([m[i, j]] + [
                mul([MINUS_ONE, lower[i][k], lower[j][k], d[k]]) for k in range(j)
            ]))
            lower[i][j] = _divide(s, pivot)
    return LowerTriangularMatrix.from_rows(lower), DiagonalMatrix(d)


def qr_decompose(m: Matrix) -> Tuple[Matrix, Matrix]:
    """
    QR decomposition by Householder reflections: A = Q R, Q orthogonal
    (rows x rows), R upper trapezoidal (rows x cols).

    Reflections need square roots, so the factors are computed in
    floating point; the matrix must be numeric with rows >= cols.

    Raises:
        DomainError: If rows < cols
        FeatureNotImplemented: For non-numeric matrices
    """
    if m.rows < m.cols:
        raise DomainError("qr_decompose", value=m.shape, reason="needs rows >= cols")
    elements = [simplify(e) for e in m.elements()]
    if not all(_is_numeric(e) for e in elements):
        raise FeatureNotImplemented("QR decomposition of a symbolic matrix")
    rows, cols = m.rows, m.cols
    r = [[elements[i * cols + j].value.to_float() for j in range(cols)] for i in range(rows)]
    q = [[1.0 if i == j else 0.0 for j in range(rows)] for i in range(rows)]

    for k in range(min(rows - 1, cols)):
        x = [r[i][k] for i in range(k, rows)]
        norm = sum(v * v for v in x) ** 0.5
        if norm == 0.0:
            continue
        alpha = -norm if x[0] >= 0 else norm
        v = list(x)
        v[0] -= alpha
        vv = sum(t * t for t in v)
        if vv == 0.0:
            continue
        # R <- H R
        for j in range(cols):
            dot = sum(v[i] * r[k + i][j] for i in range(len(v)))
            scale = 2.0 * dot / vv
            for i in range(len(v)):
                r[k + i][j] -= scale * v[i]
        # Q <- Q H
        for i in range(rows):
            dot = sum(q[i][k + t] * v[t] for t in range(len(v)))
            scale = 2.0 * dot / vv
            for t in range(len(v)):
                q[i][k + t] -= scale * v[t]

    for i in range(rows):
        for j in range(min(i, cols)):
            r[i][j] = 0.0
    return matrix(q), matrix(r)


def is_symmetric(m: Matrix) -> bool:
    if isinstance(m, (SymmetricMatrix,) + _DIAGONAL_FAMILY + (ZeroMatrix,)):
        return m.is_square
    if not m.is_square:
        return False
    return all(m[i, j] == m[j, i] for i in range(m.rows) for j in range(i + 1, m.cols))


# ============================================================
# Solving
# ============================================================

Vector = Union[Sequence, Matrix]


def _as_vector(b: Vector) -> List[Expr]:
    if isinstance(b, Matrix):
        if b.cols != 1:
            raise DomainError("solve", value=b.shape, reason="right-hand side must be a column")
        return b.column(0)
    return [as_expr(e) for e in b]


def forward_substitution(lower: Matrix, b: Vector) -> List[Expr]:
    """
    Solve L y = b for lower triangular L.

    Raises:
        DivisionByZero: On a zero pivot
    """
    rhs = _as_vector(b)
    n = lower.rows
    if len(rhs) != n:
        raise DomainError("forward_substitution", reason="dimension mismatch")
    y: List[Expr] = []
    for i in range(n):
        s = simplify(add([rhs[i]] + [mul([MINUS_ONE, lower[i, k], y[k]]) for k in range(i)]))
        pivot = lower[i, i]
        if is_zero_fast(pivot):
            raise DivisionByZero(f"zero pivot in row {i}")
        y.append(_divide(s, pivot))
    return y


def backward_substitution(upper: Matrix, b: Vector) -> List[Expr]:
    """
    Solve U x = b for upper triangular U.

    Raises:
        DivisionByZero: On a zero pivot
    """
    rhs = _as_vector(b)
    n = upper.cols
    if len(rhs) < n:
        raise DomainError("backward_substitution", reason="dimension mismatch")
    x: List[Expr] = [ZERO] * n
    for i in range(n - 1, -1, -1):
        s = simplify(add([rhs[i]] + [mul([MINUS_ONE, upper[i, k], x[k]]) for k in range(i + 1, n)]))
        pivot = upper[i, i]
        if is_zero_fast(pivot):
            raise DivisionByZero(f"zero pivot in row {i}")
        x[i] = _divide(s, pivot)
    return x


def solve(a: Matrix, b: Vector):
    """
    Solve A x = b.

    Symmetric matrices go through the root-free Cholesky (LDL^T) and fall
    back to LU when it fails; overdetermined systems are solved in the
    least-squares sense; underdetermined ones have no unique solution.

    Returns:
        The solution as a list of expressions, or NoSolution when A has
        more columns than rows

    Raises:
        DomainError: On dimension mismatch
        DivisionByZero: If A is singular

    Example:
        solve(matrix([[2, 1], [1, -1]]), [5, 1])    # => [2, 1]
    """
    from .solution import NoSolution

    rhs = _as_vector(b)
    if len(rhs) != a.rows:
        raise DomainError("solve", value=(a.shape, len(rhs)), reason="dimension mismatch")
    if a.rows > a.cols:
        return solve_least_squares(a, rhs)
    if a.rows < a.cols:
        return NoSolution

    if is_symmetric(a):
        try:
            lower, diag = ldl_decompose(a)
        except DomainError:
            pass
        else:
            y = forward_substitution(lower, rhs)
            z = [_divide(v, d) for v, d in zip(y, diag.diagonal)]
            return backward_substitution(transpose(lower), z)

    perm, lower, upper = lu_decompose(a)
    permuted = [rhs[perm.perm[i]] for i in range(a.rows)]
    return backward_substitution(upper, forward_substitution(lower, permuted))


def solve_least_squares(a: Matrix, b: Vector) -> List[Expr]:
    """
    Least-squares solution of an overdetermined system via QR:
    x = R^-1 Q^T b on the leading cols rows.

    Raises:
        DivisionByZero: If A is rank deficient (a diagonal entry of R is
            negligible against the largest one)
    """
    rhs = _as_vector(b)
    if len(rhs) != a.rows:
        raise DomainError("solve_least_squares", reason="dimension mismatch")
    q, r = qr_decompose(a)
    n = a.cols
    qtb = [simplify(add([mul([q[k, i], rhs[k]]) for k in range(a.rows)])) for i in range(n)]
    diagonal = [abs(r[i, i].value.to_float()) for i in range(n)]
    largest = max(diagonal)
    if largest == 0.0 or any(d <= _RANK_TOLERANCE * largest for d in diagonal):
        raise DivisionByZero("rank-deficient matrix in least squares")
    leading = matrix([[r[i, j] for j in range(n)] for i in range(n)])
    return backward_substitution(leading, qtb)


def inverse(m: Matrix) -> Matrix:
    """
    Inverse via one LU decomposition, solving for each identity column.

    Raises:
        DomainError: If the matrix is not square
        DivisionByZero: If the matrix is singular
    """
    _require_square(m, "inverse")
    n = m.rows
    if isinstance(m, IdentityMatrix):
        return m
    if isinstance(m, ZeroMatrix):
        raise DivisionByZero("zero matrix is not invertible")
    if isinstance(m, PermutationMatrix):
        return transpose(m)
    if isinstance(m, ScalarMatrix):
        if is_zero_fast(m.value):
            raise DivisionByZero("singular scalar matrix")
        return ScalarMatrix(n, _divide(ONE, m.value))
    if isinstance(m, DiagonalMatrix):
        if any(is_zero_fast(d) for d in m.diagonal):
            raise DivisionByZero("singular diagonal matrix")
        return _narrow(DiagonalMatrix([_divide(ONE, d) for d in m.diagonal]))

    perm, lower, upper = lu_decompose(m)
    columns = []
    for k in range(n):
        unit = [ONE if perm.perm[i] == k else ZERO for i in range(n)]
        columns.append(backward_substitution(upper, forward_substitution(lower, unit)))
    return matrix([[columns[j][i] for j in range(n)] for i in range(n)])
