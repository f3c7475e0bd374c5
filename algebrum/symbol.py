"""Symbols: named variables tagged with a commutativity kind."""

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class SymbolKind(Enum):
    """
    Kind of a symbol.

    Scalars commute with everything; matrices, operators and quaternions
    keep their position in products.
    """
    SCALAR = "scalar"
    MATRIX = "matrix"
    OPERATOR = "operator"
    QUATERNION = "quaternion"


@dataclass(frozen=True)
class Symbol:
    """A named variable. Equality and hashing use (name, kind)."""

    name: str
    kind: SymbolKind = SymbolKind.SCALAR

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Symbol name must be a non-empty string")
        object.__setattr__(self, "name", sys.intern(self.name))

    @property
    def is_commutative(self) -> bool:
        return self.kind is SymbolKind.SCALAR

    def __str__(self) -> str:
        return self.name


def symbols(names: str, kind: SymbolKind = SymbolKind.SCALAR) -> Tuple[Symbol, ...]:
    """
    Create several symbols at once.

    Example:
        x, y = symbols("x y")
    """
    return tuple(Symbol(name, kind) for name in names.replace(",", " ").split())
