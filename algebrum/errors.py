"""
Error taxonomy for algebrum.

Two classes of failure exist in the engine:

1. Structural "undefined": produced by the simplifier when an identity
   yields an indeterminate. It is an expression (see expr.undefined) and
   never raised.
2. Typed MathError: raised by the number tower, by evaluate() and by the
   matrix numeric paths. Each error carries structured fields that can be
   inspected by machines (to_dict) as well as a readable message.
"""

from typing import Any, Dict


class MathError(Exception):
    """Base class for every mathematical failure raised by the engine."""

    kind = "math_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)

    def fields(self) -> Dict[str, Any]:
        """Structured fields of the error (override in subclasses)."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = {"kind": self.kind, "message": str(self)}
        for key, value in self.fields().items():
            data[key] = value if isinstance(value, (int, float, str, type(None))) else repr(value)
        return data


class DivisionByZero(MathError, ZeroDivisionError):
    """Division by an exact or floating zero, or a singular pivot."""

    kind = "division_by_zero"

    def __init__(self, message: str = "division by zero"):
        super().__init__(message)


class DomainError(MathError, ValueError):
    """An operation was applied outside of its domain."""

    kind = "domain_error"

    def __init__(self, operation: str, value: Any = None, reason: str = ""):
        self.operation = operation
        self.value = value
        self.reason = reason
        detail = f"{operation}: {reason}" if reason else operation
        if value is not None:
            detail += f" (value: {value!r})"
        super().__init__(f"domain error in {detail}")

    def fields(self) -> Dict[str, Any]:
        return {"operation": self.operation, "value": self.value, "reason": self.reason}


class Pole(MathError):
    """A function was evaluated at one of its poles."""

    kind = "pole"

    def __init__(self, function: str, at: Any):
        self.function = function
        self.at = at
        super().__init__(f"{function} has a pole at {at!r}")

    def fields(self) -> Dict[str, Any]:
        return {"function": self.function, "at": self.at}


class BranchCut(MathError):
    """A multivalued function was evaluated on its branch cut."""

    kind = "branch_cut"

    def __init__(self, function: str, value: Any):
        self.function = function
        self.value = value
        super().__init__(f"{function} is evaluated on its branch cut at {value!r}")

    def fields(self) -> Dict[str, Any]:
        return {"function": self.function, "value": self.value}


class Undefined(MathError):
    """The expression has no value (unbound symbol, indeterminate form, ...)."""

    kind = "undefined"

    def __init__(self, expression: Any, reason: str = ""):
        self.expression = expression
        self.reason = reason
        message = f"undefined: {expression!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)

    def fields(self) -> Dict[str, Any]:
        return {"expression": self.expression, "reason": self.reason}


class NumericOverflow(MathError, OverflowError):
    """A floating result was not finite or a conversion left the float range."""

    kind = "numeric_overflow"

    def __init__(self, reason: str = "result is not a finite float"):
        self.reason = reason
        super().__init__(f"numeric overflow: {reason}")

    def fields(self) -> Dict[str, Any]:
        return {"reason": self.reason}


class FeatureNotImplemented(MathError, NotImplementedError):
    """The requested operation is not implemented for this input."""

    kind = "not_implemented"

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"not implemented: {feature}")

    def fields(self) -> Dict[str, Any]:
        return {"feature": self.feature}


# Errors produced by closed arithmetic in the number tower
ARITH_ERRORS = (DivisionByZero, NumericOverflow)
