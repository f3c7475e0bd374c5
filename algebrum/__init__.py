"""
ALGEBRUM - a symbolic algebra kernel built on term rewriting

Exact symbolic mathematics over an arbitrary-precision number tower:
simplification, polynomial and matrix algebra, differentiation,
integration and equation solving.

Quick Start:
    from algebrum import symbol, simplify, derivative, integrate, solve
    from algebrum.expr import sin, cos

    x = symbol("x")
    simplify(sin(x)**2 + cos(x)**2)         # => 1
    simplify((x**2 - 1) / (x - 1))          # => (+ 1 x)
    derivative(x**3, x)                     # => (* 3 (^ x 2))
    integrate(x, x)                         # => (* 1/2 (^ x 2))
    solve(x**2 - 4, x)                      # => Multiple(2, -2)

Rule DSL (identities and user rules):
    @rule-name[priority] "Description": (pattern) => (template) when (guard)

Pattern Syntax:
    ?x or ?x:expr     - match any expression, bind to x
    ?x:const          - match a number only
    ?x:var            - match a symbol only
    ?x:free(v)        - match an expression not containing v
    ?x...             - match the remaining arguments
    :x, :x...         - substitute / splice bound values

Example:
    from algebrum import RuleEngine, parse_sexpr

    engine = RuleEngine.from_dsl('''
        @double "x + x = 2x": (+ ?x ?x) => (* 2 :x)
    ''')
    engine(parse_sexpr("(+ y y)"))          # => (* 2 y)

Note: E is the expression builder of the rule engine; Euler's number is
algebrum.expr.E (or constant("e")).
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Errors and configuration
from .errors import (
    MathError,
    DivisionByZero,
    DomainError,
    Pole,
    BranchCut,
    Undefined,
    NumericOverflow,
    FeatureNotImplemented,
    ARITH_ERRORS,
)
from .config import EngineConfig, get_config, configure

# Numbers, symbols, expressions
from .number import Number, NumberKind
from .symbol import Symbol, SymbolKind, symbols
from .expr import (
    Expr,
    integer,
    rational,
    real,
    number,
    symbol,
    constant,
    undefined,
    is_undefined,
    as_expr,
    add,
    mul,
    power,
    function,
    relation,
    eq,
    format_sexpr,
    free_symbols,
)
from .functions import REGISTRY, FunctionInfo, get_function

# Pattern matching and rules
from .rewriter import (
    Bindings,
    NoMatch,
    matches,
    instantiate,
    replace,
)
from .engine import (
    RuleEngine,
    RuleMetadata,
    RewriteStep,
    RewriteTrace,
    E,
    parse_sexpr,
    parse_rule_line,
    load_rules_from_dsl,
)

# Kernel operations
from .simplify import simplify, substitute, is_zero, is_one, clear_cache, cache_info
from .polynomial import (
    expand,
    coefficients,
    degree,
    polynomial_gcd,
    polynomial_div,
    polynomial_quo,
    polynomial_rem,
)
from .matrix import (
    Matrix,
    matrix,
    transpose,
    trace,
    determinant,
    inverse,
    lu_decompose,
    qr_decompose,
    cholesky,
    ldl_decompose,
)
from .derivative import derivative, implicit_derivative
from .integrate import integrate
from .solution import Single, Multiple, NoSolution, InfiniteSolutions
from .solvers import (
    solve,
    solve_linear,
    solve_quadratic,
    solve_polynomial,
    solve_system,
)
from .evaluate import evaluate

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "MathError",
    "DivisionByZero",
    "DomainError",
    "Pole",
    "BranchCut",
    "Undefined",
    "NumericOverflow",
    "FeatureNotImplemented",
    "ARITH_ERRORS",
    # Configuration
    "EngineConfig",
    "get_config",
    "configure",
    # Numbers and symbols
    "Number",
    "NumberKind",
    "Symbol",
    "SymbolKind",
    "symbols",
    # Expressions
    "Expr",
    "integer",
    "rational",
    "real",
    "number",
    "symbol",
    "constant",
    "undefined",
    "is_undefined",
    "as_expr",
    "add",
    "mul",
    "power",
    "function",
    "relation",
    "eq",
    "format_sexpr",
    "free_symbols",
    # Function registry
    "REGISTRY",
    "FunctionInfo",
    "get_function",
    # Pattern matching
    "Bindings",
    "NoMatch",
    "matches",
    "instantiate",
    "replace",
    # Rule engine
    "RuleEngine",
    "RuleMetadata",
    "RewriteStep",
    "RewriteTrace",
    "E",
    "parse_sexpr",
    "parse_rule_line",
    "load_rules_from_dsl",
    # Simplifier
    "simplify",
    "substitute",
    "is_zero",
    "is_one",
    "clear_cache",
    "cache_info",
    # Polynomials
    "expand",
    "coefficients",
    "degree",
    "polynomial_gcd",
    "polynomial_div",
    "polynomial_quo",
    "polynomial_rem",
    # Matrices
    "Matrix",
    "matrix",
    "transpose",
    "trace",
    "determinant",
    "inverse",
    "lu_decompose",
    "qr_decompose",
    "cholesky",
    "ldl_decompose",
    # Calculus
    "derivative",
    "implicit_derivative",
    "integrate",
    # Solvers
    "Single",
    "Multiple",
    "NoSolution",
    "InfiniteSolutions",
    "solve",
    "solve_linear",
    "solve_quadratic",
    "solve_polynomial",
    "solve_system",
    # Numerical evaluation
    "evaluate",
]
