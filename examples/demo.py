#!/usr/bin/env python3
"""
ALGEBRUM Feature Demonstration

This script walks through the major features of the ALGEBRUM kernel.
"""

from algebrum import (
    symbol, integer, rational, eq, format_sexpr,
    simplify, substitute, expand, polynomial_gcd, polynomial_div,
    matrix, determinant, inverse, lu_decompose,
    derivative, implicit_derivative, integrate,
    solve, solve_system, evaluate,
    RuleEngine, parse_sexpr, Number, MathError,
)
from algebrum.expr import cos, exp, ln, sin
from algebrum.matrix import solve as solve_matrix


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def show(label: str, value):
    print(f"  {label:32} => {value}")


x = symbol("x")
y = symbol("y")


def demo_numbers():
    """Demonstrate the number tower."""
    section("Number Tower")

    big = Number(2 ** 63 - 1).add(Number(1))
    show("2^63 - 1 + 1", f"{big} ({big.kind.name})")
    show("1/3 + 1/6", Number(1).div(Number(3)).add(Number(1).div(Number(6))))
    show("0.5 + 1/4", Number(0.5).add(rational(1, 4).value))


def demo_simplify():
    """Demonstrate canonical forms."""
    section("Simplification")

    examples = [
        ("x + x + 3x", x + x + 3 * x),
        ("(x^2 - 1) / (x - 1)", (x ** 2 - 1) / (x - 1)),
        ("sin(x)^2 + cos(x)^2", sin(x) ** 2 + cos(x) ** 2),
        ("exp(ln(y))", exp(ln(y))),
        ("1 / 0", integer(1) / 0),
    ]
    for label, expr in examples:
        show(label, format_sexpr(simplify(expr)))

    show("x^2 + 1 at x = 3", substitute(x ** 2 + 1, {"x": 3}))


def demo_polynomials():
    """Demonstrate polynomial dispatch."""
    section("Polynomials")

    show("expand((x + 1)^3)", expand((x + 1) ** 3))
    show("gcd(x^2 - 1, x^2 + 2x + 1)", polynomial_gcd(x ** 2 - 1, x ** 2 + 2 * x + 1, x))
    q, r = polynomial_div(x ** 3 + 2, x - 1, x)
    show("(x^3 + 2) / (x - 1)", f"q = {q}, r = {r}")


def demo_matrices():
    """Demonstrate the matrix engine."""
    section("Matrices")

    a = matrix([[4, 3], [6, 3]])
    show("det [[4, 3], [6, 3]]", determinant(a))
    show("inverse", inverse(a).to_rows())
    p, lower, upper = lu_decompose(a)
    show("LU: L", lower.to_rows())
    show("LU: U", upper.to_rows())
    show("solve A v = [1, 2]", solve_matrix(a, [1, 2]))

    try:
        solve_matrix(matrix([[1, 2], [2, 4]]), [3, 6])
    except MathError as exc:
        show("singular system", f"{type(exc).__name__}: {exc}")


def demo_calculus():
    """Demonstrate differentiation and integration."""
    section("Calculus")

    show("d/dx x^3", derivative(x ** 3, x))
    show("d/dx sin(x^2)", derivative(sin(x ** 2), x))
    show("d2/dx2 x^3", derivative(x ** 3, x, order=2))
    show("dy/dx on x^2 + y^2 = 1", implicit_derivative(eq(x ** 2 + y ** 2, 1), y, x))

    antiderivative = integrate(x, x)
    show("integral of x", antiderivative)
    show("... differentiated back", derivative(antiderivative, x))
    show("integral of x exp(x^2)", integrate(x * exp(x ** 2), x))
    show("integral of x sin(x)", integrate(x * sin(x), x))
    show("integral of 1/(x^2 - 1)", integrate((x ** 2 - 1) ** -1, x))
    show("integral of exp(x^2)", integrate(exp(x ** 2), x))
    show("integral of x^2 from 0 to 3", integrate(x ** 2, x, bounds=(0, 3)))


def demo_solvers():
    """Demonstrate the equation solvers."""
    section("Equation Solvers")

    show("2x + 3 = 0", solve(2 * x + 3, x))
    show("x^2 - 4 = 0", solve(x ** 2 - 4, x))
    show("x^2 + 1 = 0", solve(x ** 2 + 1, x))
    show("x^3 - 6x^2 + 11x - 6 = 0", solve(x ** 3 - 6 * x ** 2 + 11 * x - 6, x))
    show("{2x + y = 5, x - y = 1}", solve_system([2 * x + y - 5, x - y - 1], [x, y]))


def demo_evaluate():
    """Demonstrate numerical evaluation."""
    section("Numerical Evaluation")

    show("x^2 + 1 at x = 3", evaluate(x ** 2 + 1, {"x": 3}))
    show("sin(x) at x = 1.0", evaluate(sin(x), {"x": 1.0}))
    try:
        evaluate(ln(x), {"x": 0})
    except MathError as exc:
        show("ln(x) at x = 0", f"{type(exc).__name__}: {exc}")


def demo_rules():
    """Demonstrate user rules and tracing."""
    section("Rule Engine")

    engine = RuleEngine.from_dsl('''
        [algebra]
        @add-zero "x + 0 = x": (+ ?x 0) => :x
        @double[10] "x + x = 2x": (+ ?x ?x) => (* 2 :x)

        [calculus]
        @dd-sin: (dd (sin ?u) ?v:var) => (* (cos :u) (dd :u :v))
        @dd-self: (dd ?v:var ?v) => 1
    ''')

    print(f"  Groups: {engine.groups()}")
    for line in engine.list_rules():
        print(f"    {line}")

    expr = parse_sexpr("(dd (sin x) x)")
    result, trace = engine(expr, trace=True)
    show(format_sexpr(expr), format_sexpr(result))
    print(f"  Compact: {trace.format('compact')}")
    print(f"  Summary: {trace.summary()}")

    show("(+ y y) with [algebra] only", engine(parse_sexpr("(+ y y)"), groups=["algebra"]))


def main():
    """Run all demonstrations."""
    print("ALGEBRUM - a symbolic algebra kernel built on term rewriting")
    print("Feature Demonstration")

    demo_numbers()
    demo_simplify()
    demo_polynomials()
    demo_matrices()
    demo_calculus()
    demo_solvers()
    demo_evaluate()
    demo_rules()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
