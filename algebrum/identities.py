"""
The identity rule set used by the simplifier.

Rules come from the function registry (each FunctionInfo lists its own
identities in the rule DSL) and are grouped by the function that owns
them, so a caller can switch a family off:

    identity_engine().disable_group("trig")
"""

import threading
from typing import Optional

from .engine import RuleEngine
from .functions import REGISTRY

# Registry function -> rule group
GROUPS = {
    "sin": "trig", "cos": "trig", "tan": "trig",
    "cosh": "hyperbolic", "sinh": "hyperbolic",
    "exp": "exp-log", "ln": "exp-log",
    "abs": "abs-sign", "sign": "abs-sign",
}

_engine: Optional[RuleEngine] = None
_lock = threading.Lock()


def identity_dsl() -> str:
    """DSL text of every registered identity, one [group] per function family."""
    lines = []
    for info in REGISTRY:
        if not info.identities:
            continue
        lines.append(f"[{GROUPS.get(info.name, info.name)}]")
        lines.extend(info.identities)
    return "\n".join(lines)


def identity_engine() -> RuleEngine:
    """The process-wide identity engine, built on first use."""
    global _engine
    if _engine is None:
        with _lock:
            if _engine is None:
                _engine = RuleEngine.from_dsl(identity_dsl())
    return _engine
