"""
Expression tree for algebrum.

Every symbolic value is an immutable Expr node. Heads:

    Num, Sym, Const                 - atoms
    Add, Mul                        - n-ary sums and products
    Pow                             - base ** exponent
    Func                            - named application (sin, exp, ...)
    MatrixExpr                      - a boxed matrix value
    Relation, Piecewise, SetExpr, Interval,
    Derivative, Integral, ComplexExpr, MethodCall
                                    - carriers threaded by the simplifier
    Wildcard, RestWildcard, Exact   - pattern nodes (see rewriter.py)

Node classes build raw nodes and never normalize. The module-level
constructors (add, mul, power, function, ...) enforce the tree invariants:

    - Add/Mul are flattened, never have fewer than two children, and drop
      their identity element; a literal zero annihilates a Mul.
    - x^0 = 1 (0^0 included), x^1 = x, 0^negative is undefined.
    - Children of a commutative Add/Mul are kept in canonical order
      (sort_key); if any child is noncommutative the caller's order is kept.
    - function() folds registered special values and rewrites sqrt(x)
      to x^(1/2) and log to ln.

Python operators on expressions go through these constructors:

    x = symbol("x")
    x**2 + 2*x + 1        # => (+ 1 (* 2 x) (^ x 2))
"""

from fractions import Fraction
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import DivisionByZero
from .number import Number
from .symbol import Symbol, SymbolKind

CONSTANT_NAMES = ("pi", "e", "i", "phi", "euler_gamma", "infinity", "neg_infinity")
RELATION_OPS = ("=", "!=", "<", "<=", ">", ">=")


# ============================================================
# Base class
# ============================================================

class Expr:
    """
    Base class of all expression nodes.

    Equality is structural and hashing mirrors it. Comparing with a plain
    int, Fraction or float compares against the corresponding number:
    ``integer(3) == 3`` is True.
    """

    __slots__ = ('_hash', '_key', '_free', '_comm', '_text')

    def _init(self, identity: Tuple) -> None:
        self._hash = hash((type(self).__name__,) + identity)
        self._key = None
        self._free = None
        self._comm = None
        self._text = None

    # Structure ---------------------------------------------------

    @property
    def args(self) -> Tuple['Expr', ...]:
        """Direct children."""
        return ()

    @property
    def is_atom(self) -> bool:
        return False

    def rebuild(self, args: Sequence['Expr']) -> 'Expr':
        """Build a node of the same head from new children (normalizing)."""
        return self

    def _fields(self) -> Tuple:
        return self.args

    def _sexpr(self) -> str:
        raise NotImplementedError

    # Cached queries ----------------------------------------------

    @property
    def free_symbols(self) -> FrozenSet['Sym']:
        if self._free is None:
            self._free = self._compute_free()
        return self._free

    def _compute_free(self) -> FrozenSet['Sym']:
        result = frozenset()
        for arg in self.args:
            result |= arg.free_symbols
        return result

    @property
    def is_commutative(self) -> bool:
        if self._comm is None:
            self._comm = self._compute_commutative()
        return self._comm

    def _compute_commutative(self) -> bool:
        return all(arg.is_commutative for arg in self.args)

    def sort_key(self) -> Tuple:
        if self._key is None:
            self._key = (2, format_sexpr(self))
        return self._key

    # Equality ----------------------------------------------------

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Expr):
            if isinstance(other, (Number, int, Fraction, float)) and not isinstance(other, bool):
                other = Num(Number(other))
            else:
                return NotImplemented
        if type(self) is not type(other) or self._hash != other._hash:
            return False
        return self._fields() == other._fields()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return self._hash

    def __repr__(self) -> str:
        return format_sexpr(self)

    __str__ = __repr__

    # Operators ---------------------------------------------------

    def __add__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else add([self, other])

    def __radd__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else add([other, self])

    def __sub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else sub(self, other)

    def __rsub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else sub(other, self)

    def __mul__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else mul([self, other])

    def __rmul__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else mul([other, self])

    def __truediv__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else div(self, other)

    def __rtruediv__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else div(other, self)

    def __pow__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else power(self, other)

    def __rpow__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else power(other, self)

    def __neg__(self):
        return neg(self)

    def __pos__(self):
        return self


# ============================================================
# Atoms
# ============================================================

class Num(Expr):
    """A number leaf."""

    __slots__ = ('value',)

    def __init__(self, value: Number):
        self.value = value if isinstance(value, Number) else Number(value)
        self._init(())
        # Hash like the plain number so that Num(3) and 3 agree in dicts
        self._hash = hash(self.value)

    @property
    def is_atom(self) -> bool:
        return True

    def _fields(self):
        return (self.value,)

    def _compute_free(self):
        return frozenset()

    def _compute_commutative(self):
        return True

    def sort_key(self):
        if self._key is None:
            self._key = (0, self.value.value, str(self.value))
        return self._key

    def _sexpr(self) -> str:
        return str(self.value)


class Sym(Expr):
    """A symbol leaf."""

    __slots__ = ('symbol',)

    def __init__(self, symbol: Symbol):
        self.symbol = symbol
        self._init((symbol,))

    @property
    def name(self) -> str:
        return self.symbol.name

    @property
    def kind(self) -> SymbolKind:
        return self.symbol.kind

    @property
    def is_atom(self) -> bool:
        return True

    def _fields(self):
        return (self.symbol,)

    def _compute_free(self):
        return frozenset((self,))

    def _compute_commutative(self):
        return self.symbol.is_commutative

    def sort_key(self):
        if self._key is None:
            self._key = (1, 0, self.symbol.name, self.symbol.kind.value)
        return self._key

    def _sexpr(self) -> str:
        return self.symbol.name


class Const(Expr):
    """A named mathematical constant (pi, e, i, phi, euler_gamma, infinity, neg_infinity)."""

    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name
        self._init((name,))

    @property
    def is_atom(self) -> bool:
        return True

    def _fields(self):
        return (self.name,)

    def _compute_free(self):
        return frozenset()

    def _compute_commutative(self):
        return True

    def sort_key(self):
        if self._key is None:
            self._key = (1, 1, self.name, "")
        return self._key

    def _sexpr(self) -> str:
        return self.name


# ============================================================
# Arithmetic heads
# ============================================================

class Add(Expr):
    """n-ary sum."""

    __slots__ = ('terms',)

    def __init__(self, terms: Sequence[Expr]):
        self.terms = tuple(terms)
        self._init(self.terms)

    @property
    def args(self):
        return self.terms

    def rebuild(self, args):
        return add(args)

    def _sexpr(self) -> str:
        return "(+ " + " ".join(format_sexpr(t) for t in self.terms) + ")"


class Mul(Expr):
    """n-ary product."""

    __slots__ = ('factors',)

    def __init__(self, factors: Sequence[Expr]):
        self.factors = tuple(factors)
        self._init(self.factors)

    @property
    def args(self):
        return self.factors

    def rebuild(self, args):
        return mul(args)

    def _sexpr(self) -> str:
        return "(* " + " ".join(format_sexpr(f) for f in self.factors) + ")"


class Pow(Expr):
    """base ** exp."""

    __slots__ = ('base', 'exp')

    def __init__(self, base: Expr, exp: Expr):
        self.base = base
        self.exp = exp
        self._init((base, exp))

    @property
    def args(self):
        return (self.base, self.exp)

    def rebuild(self, args):
        return power(args[0], args[1])

    def _compute_commutative(self):
        return self.base.is_commutative

    def _sexpr(self) -> str:
        return f"(^ {format_sexpr(self.base)} {format_sexpr(self.exp)})"


class Func(Expr):
    """Named function application."""

    __slots__ = ('name', 'args')

    def __init__(self, name: str, args: Sequence[Expr] = ()):
        self.name = name
        self.args = tuple(args)
        self._init((name,) + self.args)

    def rebuild(self, args):
        return function(self.name, args)

    def _fields(self):
        return (self.name,) + self.args

    def _sexpr(self) -> str:
        if not self.args:
            return f"({self.name})"
        return f"({self.name} " + " ".join(format_sexpr(a) for a in self.args) + ")"


# ============================================================
# Carriers
# ============================================================

class MatrixExpr(Expr):
    """A matrix value inside an expression. Never commutative."""

    __slots__ = ('matrix',)

    def __init__(self, matrix):
        self.matrix = matrix
        self._init((matrix,))

    @property
    def args(self):
        return tuple(self.matrix.elements())

    def rebuild(self, args):
        from .matrix import matrix_from_elements
        return MatrixExpr(matrix_from_elements(self.matrix.rows, self.matrix.cols, args))

    def _fields(self):
        return (self.matrix,)

    def _compute_commutative(self):
        return False

    def _sexpr(self) -> str:
        rows = []
        for row in self.matrix.to_rows():
            rows.append("(" + " ".join(format_sexpr(e) for e in row) + ")")
        return "(matrix " + " ".join(rows) + ")"


class Relation(Expr):
    """lhs op rhs for op in =, !=, <, <=, >, >=."""

    __slots__ = ('op', 'lhs', 'rhs')

    def __init__(self, op: str, lhs: Expr, rhs: Expr):
        self.op = op
        self.lhs = lhs
        self.rhs = rhs
        self._init((op, lhs, rhs))

    @property
    def args(self):
        return (self.lhs, self.rhs)

    def rebuild(self, args):
        return Relation(self.op, args[0], args[1])

    def _fields(self):
        return (self.op, self.lhs, self.rhs)

    def _sexpr(self) -> str:
        return f"({self.op} {format_sexpr(self.lhs)} {format_sexpr(self.rhs)})"


class Piecewise(Expr):
    """Conditional value: the first (value, condition) whose condition holds, else otherwise."""

    __slots__ = ('pieces', 'otherwise')

    def __init__(self, pieces: Sequence[Tuple[Expr, Expr]], otherwise: Optional[Expr] = None):
        self.pieces = tuple((v, c) for v, c in pieces)
        self.otherwise = otherwise
        self._init((self.pieces, otherwise))

    @property
    def args(self):
        flat = []
        for value, cond in self.pieces:
            flat.extend((value, cond))
        if self.otherwise is not None:
            flat.append(self.otherwise)
        return tuple(flat)

    def rebuild(self, args):
        args = list(args)
        n = len(self.pieces)
        pieces = [(args[2 * k], args[2 * k + 1]) for k in range(n)]
        otherwise = args[2 * n] if self.otherwise is not None else None
        return Piecewise(pieces, otherwise)

    def _fields(self):
        return (self.pieces, self.otherwise)

    def _sexpr(self) -> str:
        parts = [f"({format_sexpr(v)} {format_sexpr(c)})" for v, c in self.pieces]
        if self.otherwise is not None:
            parts.append(f"(otherwise {format_sexpr(self.otherwise)})")
        return "(piecewise " + " ".join(parts) + ")"


class SetExpr(Expr):
    """Finite set of expressions."""

    __slots__ = ('elements',)

    def __init__(self, elements: Sequence[Expr]):
        self.elements = tuple(elements)
        self._init(self.elements)

    @property
    def args(self):
        return self.elements

    def rebuild(self, args):
        return finite_set(args)

    def _sexpr(self) -> str:
        return "(set " + " ".join(format_sexpr(e) for e in self.elements) + ")"


class Interval(Expr):
    """Real interval between start and end, each end open or closed."""

    __slots__ = ('start', 'end', 'left_open', 'right_open')

    def __init__(self, start: Expr, end: Expr, left_open: bool = False, right_open: bool = False):
        self.start = start
        self.end = end
        self.left_open = left_open
        self.right_open = right_open
        self._init((start, end, left_open, right_open))

    @property
    def args(self):
        return (self.start, self.end)

    def rebuild(self, args):
        return Interval(args[0], args[1], self.left_open, self.right_open)

    def _fields(self):
        return (self.start, self.end, self.left_open, self.right_open)

    def _sexpr(self) -> str:
        left = "open" if self.left_open else "closed"
        right = "open" if self.right_open else "closed"
        return f"(interval {format_sexpr(self.start)} {format_sexpr(self.end)} {left} {right})"


class Calculus(Expr):
    """Base of the unevaluated derivative and integral placeholders."""

    __slots__ = ()


class Derivative(Calculus):
    """Unevaluated d^order expr / d var^order."""

    __slots__ = ('expr', 'var', 'order')

    def __init__(self, expr: Expr, var: 'Sym', order: int = 1):
        self.expr = expr
        self.var = var
        self.order = order
        self._init((expr, var, order))

    @property
    def args(self):
        return (self.expr, self.var)

    def rebuild(self, args):
        return Derivative(args[0], args[1], self.order)

    def _fields(self):
        return (self.expr, self.var, self.order)

    def _sexpr(self) -> str:
        return f"(derivative {format_sexpr(self.expr)} {format_sexpr(self.var)} {self.order})"


class Integral(Calculus):
    """Unevaluated integral of expr in var, definite when bounds is a (lower, upper) pair."""

    __slots__ = ('expr', 'var', 'bounds')

    def __init__(self, expr: Expr, var: 'Sym', bounds: Optional[Tuple[Expr, Expr]] = None):
        self.expr = expr
        self.var = var
        self.bounds = tuple(bounds) if bounds is not None else None
        self._init((expr, var, self.bounds))

    @property
    def args(self):
        if self.bounds is None:
            return (self.expr, self.var)
        return (self.expr, self.var) + self.bounds

    def rebuild(self, args):
        bounds = (args[2], args[3]) if self.bounds is not None else None
        return Integral(args[0], args[1], bounds)

    def _fields(self):
        return (self.expr, self.var, self.bounds)

    def _compute_free(self):
        inner = self.expr.free_symbols
        if self.bounds is None:
            return inner | self.var.free_symbols
        bound_free = self.bounds[0].free_symbols | self.bounds[1].free_symbols
        return (inner - {self.var}) | bound_free

    def _sexpr(self) -> str:
        text = f"(integral {format_sexpr(self.expr)} {format_sexpr(self.var)}"
        if self.bounds is not None:
            text += f" {format_sexpr(self.bounds[0])} {format_sexpr(self.bounds[1])}"
        return text + ")"


class ComplexExpr(Expr):
    """real + imag*i kept as a pair."""

    __slots__ = ('real', 'imag')

    def __init__(self, real: Expr, imag: Expr):
        self.real = real
        self.imag = imag
        self._init((real, imag))

    @property
    def args(self):
        return (self.real, self.imag)

    def rebuild(self, args):
        return complex_(args[0], args[1])

    def _sexpr(self) -> str:
        return f"(complex {format_sexpr(self.real)} {format_sexpr(self.imag)})"


class MethodCall(Expr):
    """target.method(args) kept unevaluated."""

    __slots__ = ('target', 'method', 'call_args')

    def __init__(self, target: Expr, method: str, call_args: Sequence[Expr] = ()):
        self.target = target
        self.method = method
        self.call_args = tuple(call_args)
        self._init((target, method) + self.call_args)

    @property
    def args(self):
        return (self.target,) + self.call_args

    def rebuild(self, args):
        return MethodCall(args[0], self.method, args[1:])

    def _fields(self):
        return (self.target, self.method) + self.call_args

    def _sexpr(self) -> str:
        parts = [format_sexpr(self.target), self.method] + [format_sexpr(a) for a in self.call_args]
        return "(call " + " ".join(parts) + ")"


# ============================================================
# Pattern nodes
# ============================================================

# Wildcard constraint: None, "const", "var", ("free", name) or a predicate
Constraint = Union[None, str, Tuple[str, str], Callable[[Expr], bool]]


class Wildcard(Expr):
    """
    Pattern variable ?name, also used as :name in templates.

    Args:
        name: Binding name
        constraint: None (anything), "const" (numbers), "var" (symbols),
            ("free", v) (expressions free of the symbol bound to / named v),
            or a predicate callable
        exclude: Expressions this wildcard refuses to bind
    """

    __slots__ = ('name', 'constraint', 'exclude')

    def __init__(self, name: str, constraint: Constraint = None, exclude: Iterable = ()):
        self.name = name
        self.constraint = constraint
        self.exclude = frozenset(as_expr(e) for e in exclude)
        self._init((name, constraint, self.exclude))

    @property
    def is_atom(self) -> bool:
        return True

    def _fields(self):
        return (self.name, self.constraint, self.exclude)

    def _compute_free(self):
        return frozenset()

    def _compute_commutative(self):
        return True

    def _sexpr(self) -> str:
        c = self.constraint
        if c is None:
            return f"?{self.name}"
        if c in ("const", "var"):
            return f"?{self.name}:{c}"
        if isinstance(c, tuple) and c[0] == "free":
            return f"?{self.name}:free({c[1]})"
        return f"?{self.name}:{getattr(c, '__name__', 'pred')}"


class RestWildcard(Expr):
    """Pattern variable ?name... binding the remaining arguments (spliced by :name...)."""

    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name
        self._init((name,))

    @property
    def is_atom(self) -> bool:
        return True

    def _fields(self):
        return (self.name,)

    def _compute_free(self):
        return frozenset()

    def _compute_commutative(self):
        return True

    def _sexpr(self) -> str:
        return f"?{self.name}..."


class Exact(Expr):
    """Matches exactly the wrapped expression."""

    __slots__ = ('expr',)

    def __init__(self, expr: Expr):
        self.expr = expr
        self._init((expr,))

    @property
    def args(self):
        return (self.expr,)

    def rebuild(self, args):
        return Exact(args[0])

    def _sexpr(self) -> str:
        return f"(exact {format_sexpr(self.expr)})"


# ============================================================
# Atom constructors
# ============================================================

def integer(n: int) -> Num:
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"integer() expects int, got {type(n).__name__}")
    return Num(Number(n))


def rational(p: int, q: int = 1) -> Num:
    if q == 0:
        raise DivisionByZero("rational with zero denominator")
    return Num(Number(Fraction(p, q)))


def real(x: float) -> Num:
    return Num(Number(float(x)))


def number(value) -> Num:
    return Num(Number(value))


def symbol(name: str, kind: SymbolKind = SymbolKind.SCALAR) -> Sym:
    return Sym(Symbol(name, kind))


def constant(name: str) -> Const:
    if name not in CONSTANT_NAMES:
        raise ValueError(f"Unknown constant: {name}")
    return Const(name)


ZERO = Num(Number(0))
ONE = Num(Number(1))
MINUS_ONE = Num(Number(-1))
TWO = Num(Number(2))
HALF = Num(Number(Fraction(1, 2)))

PI = Const("pi")
E = Const("e")
I = Const("i")
PHI = Const("phi")
EULER_GAMMA = Const("euler_gamma")
INFINITY = Const("infinity")
NEG_INFINITY = Const("neg_infinity")

UNDEFINED = Func("undefined", ())


def undefined() -> Func:
    """The structural undefined marker."""
    return UNDEFINED


def is_undefined(expr: Expr) -> bool:
    return isinstance(expr, Func) and expr.name == "undefined" and not expr.args


def as_expr(value: Any) -> Expr:
    """
    Lift a Python value into an expression.

    Accepts Expr, Number, int, Fraction, float, str (a symbol name),
    Symbol and matrix values.
    """
    if isinstance(value, Expr):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not an expression")
    if isinstance(value, Number):
        return Num(value)
    if isinstance(value, (int, Fraction, float)):
        return Num(Number(value))
    if isinstance(value, str):
        return symbol(value)
    if isinstance(value, Symbol):
        return Sym(value)
    from .matrix import Matrix
    if isinstance(value, Matrix):
        return MatrixExpr(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to an expression")


def as_var(value: Any) -> Sym:
    """Lift a symbol designator (Sym, Symbol or name) into a Sym."""
    result = as_expr(value)
    if not isinstance(result, Sym):
        raise TypeError(f"Expected a symbol, got {result!r}")
    return result


def _coerce(value) -> Optional[Expr]:
    try:
        return as_expr(value)
    except TypeError:
        return None


# ============================================================
# Normalizing constructors
# ============================================================

def add(terms: Iterable) -> Expr:
    """Sum: flatten, drop zeros, unwrap, order canonically when commutative."""
    flat: List[Expr] = []
    for term in terms:
        term = as_expr(term)
        if isinstance(term, Add):
            flat.extend(term.terms)
        elif isinstance(term, Num) and term.value.is_zero():
            continue
        else:
            flat.append(term)
    if not flat:
        return ZERO
    if len(flat) == 1:
        return flat[0]
    if all(t.is_commutative for t in flat):
        flat.sort(key=sort_key)
    return Add(flat)


def mul(factors: Iterable) -> Expr:
    """Product: flatten, drop ones, zero annihilates, order canonically when commutative."""
    flat: List[Expr] = []
    for factor in factors:
        factor = as_expr(factor)
        if isinstance(factor, Mul):
            flat.extend(factor.factors)
        elif isinstance(factor, Num) and factor.value.is_one():
            continue
        else:
            flat.append(factor)
    if any(isinstance(f, Num) and f.value.is_zero() for f in flat):
        # A zero scalar times a matrix is left for the simplifier to fold
        if not any(isinstance(f, MatrixExpr) for f in flat):
            return ZERO
    if not flat:
        return ONE
    if len(flat) == 1:
        return flat[0]
    if all(f.is_commutative for f in flat):
        flat.sort(key=sort_key)
    return Mul(flat)


def power(base, exp) -> Expr:
    """Power with the trivial laws x^0 = 1, x^1 = x and 0^negative = undefined."""
    base = as_expr(base)
    exp = as_expr(exp)
    if isinstance(exp, Num):
        if exp.value.is_zero():
            return ONE
        if exp.value.is_one():
            return base
        if isinstance(base, Num) and base.value.is_zero() and exp.value.is_negative():
            return UNDEFINED
    return Pow(base, exp)


_REGISTRY = None


def _registry():
    global _REGISTRY
    if _REGISTRY is None:
        from .functions import REGISTRY
        _REGISTRY = REGISTRY
    return _REGISTRY


def function(name: str, args: Iterable = ()) -> Expr:
    """
    Function application.

    sqrt(x) becomes x^(1/2), log is an alias of ln (log(x, b) is
    ln(x)/ln(b)), and registered special values are folded.

    Raises:
        TypeError: If a registered function gets the wrong number of arguments
    """
    args = tuple(as_expr(a) for a in args)
    if name == "sqrt":
        if len(args) != 1:
            raise TypeError("sqrt takes exactly one argument")
        return power(args[0], HALF)
    if name == "log":
        if len(args) == 2:
            return div(function("ln", args[:1]), function("ln", args[1:]))
        name = "ln"
    info = _registry().get(name)
    if info is not None:
        if len(args) != info.arity:
            raise TypeError(f"{name} takes {info.arity} argument(s), got {len(args)}")
        value = info.special_value(args)
        if value is not None:
            return value
    return Func(name, args)


def sub(a, b) -> Expr:
    return add([a, neg(b)])


def neg(a) -> Expr:
    a = as_expr(a)
    if isinstance(a, Num):
        return Num(a.value.neg())
    return mul([MINUS_ONE, a])


def div(a, b) -> Expr:
    a = as_expr(a)
    b = as_expr(b)
    if isinstance(b, Num) and b.value.is_exact() and not b.value.is_zero():
        return mul([Num(Number(1).div(b.value)), a])
    return mul([a, power(b, MINUS_ONE)])


def sqrt(x) -> Expr:
    return function("sqrt", [x])


def exp(x) -> Expr:
    return function("exp", [x])


def ln(x) -> Expr:
    return function("ln", [x])


def sin(x) -> Expr:
    return function("sin", [x])


def cos(x) -> Expr:
    return function("cos", [x])


def tan(x) -> Expr:
    return function("tan", [x])


def relation(op: str, lhs, rhs) -> Relation:
    if op not in RELATION_OPS:
        raise ValueError(f"Unknown relation operator: {op}")
    return Relation(op, as_expr(lhs), as_expr(rhs))


def eq(lhs, rhs) -> Relation:
    return relation("=", lhs, rhs)


def piecewise(pieces: Iterable[Tuple[Any, Any]], otherwise=None) -> Piecewise:
    pieces = [(as_expr(v), as_expr(c)) for v, c in pieces]
    return Piecewise(pieces, as_expr(otherwise) if otherwise is not None else None)


def finite_set(elements: Iterable) -> SetExpr:
    unique = {}
    for element in elements:
        element = as_expr(element)
        unique.setdefault(element, element)
    return SetExpr(sorted(unique.values(), key=sort_key))


def interval(start, end, left_open: bool = False, right_open: bool = False) -> Interval:
    return Interval(as_expr(start), as_expr(end), left_open, right_open)


def complex_(real_part, imag_part) -> Expr:
    real_part = as_expr(real_part)
    imag_part = as_expr(imag_part)
    if isinstance(imag_part, Num) and imag_part.value.is_zero():
        return real_part
    return ComplexExpr(real_part, imag_part)


def matrix_expr(rows) -> MatrixExpr:
    from .matrix import matrix
    return MatrixExpr(matrix(rows))


# ============================================================
# Structural queries
# ============================================================

def sort_key(expr: Expr) -> Tuple:
    """
    Canonical order key.

    Band 0 holds numbers by value, band 1 atoms (symbols before constants)
    by name and kind, band 2 compound terms by their s-expression text.
    """
    return expr.sort_key()


def format_sexpr(expr: Expr) -> str:
    """
    Printed s-expression form.

    Examples:
        x + 1         -> "(+ 1 x)"
        sin(x)**2     -> "(^ (sin x) 2)"
        rational(1,2) -> "1/2"
    """
    if expr._text is None:
        expr._text = expr._sexpr()
    return expr._text


def free_symbols(expr: Expr) -> FrozenSet[Sym]:
    return as_expr(expr).free_symbols


def depth(expr: Expr) -> int:
    args = expr.args
    if not args:
        return 1
    return 1 + max(depth(a) for a in args)


def operand_count(expr: Expr) -> int:
    return len(expr.args)


def node_count(expr: Expr) -> int:
    return 1 + sum(node_count(a) for a in expr.args)


def contains(expr: Expr, sub_expr: Expr) -> bool:
    """True if sub_expr occurs anywhere in expr."""
    if expr == sub_expr:
        return True
    return any(contains(a, sub_expr) for a in expr.args)


def has_symbol(expr: Expr, var) -> bool:
    return as_var(var) in expr.free_symbols


def is_commutative(expr: Expr) -> bool:
    return expr.is_commutative


def is_zero_fast(expr: Expr) -> bool:
    """Literal zero test (no simplification)."""
    return isinstance(expr, Num) and expr.value.is_zero()


def is_one_fast(expr: Expr) -> bool:
    """Literal one test (no simplification)."""
    return isinstance(expr, Num) and expr.value.is_one()


def is_number(expr: Expr) -> bool:
    return isinstance(expr, Num)


def is_negative_number(expr: Expr) -> bool:
    return isinstance(expr, Num) and expr.value.is_negative()
