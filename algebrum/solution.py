"""
Solver results.

    Single(value)          - exactly one solution
    Multiple(values)       - several solutions (roots, or a system's vector)
    NoSolution             - inconsistent (falsy)
    InfiniteSolutions      - every value solves it

    result = solve_linear(eq, x)
    if isinstance(result, Single):
        print(result.value)
"""

from dataclasses import dataclass
from typing import Iterator, Tuple

from .expr import Expr, format_sexpr


@dataclass(frozen=True)
class Single:
    """One solution."""

    value: Expr

    def __iter__(self) -> Iterator[Expr]:
        return iter((self.value,))

    def __len__(self) -> int:
        return 1

    def __repr__(self) -> str:
        return f"Single({format_sexpr(self.value)})"


@dataclass(frozen=True)
class Multiple:
    """Several solutions, in solver order."""

    values: Tuple[Expr, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def __iter__(self) -> Iterator[Expr]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> Expr:
        return self.values[index]

    def __repr__(self) -> str:
        return "Multiple(" + ", ".join(format_sexpr(v) for v in self.values) + ")"


class _NoSolution:
    """Singleton: the equation or system is inconsistent. Falsy."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __iter__(self):
        return iter(())

    def __len__(self) -> int:
        return 0

    def __repr__(self) -> str:
        return "NoSolution"


class _InfiniteSolutions:
    """Singleton: every value is a solution."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "InfiniteSolutions"


NoSolution = _NoSolution()
InfiniteSolutions = _InfiniteSolutions()
