"""Engine configuration for algebrum."""

import os
from dataclasses import dataclass, field, fields, replace


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class EngineConfig:
    """Central configuration for the kernel (environment variables override defaults)."""

    # Simplifier memoization
    cache_capacity: int = field(default_factory=lambda: _env_int("ALGEBRUM_CACHE_CAPACITY", 1000))
    max_simplify_passes: int = field(default_factory=lambda: _env_int("ALGEBRUM_MAX_SIMPLIFY_PASSES", 16))

    # Pattern matching: exhaustive permutations up to this many items
    permutation_limit: int = 6

    # Integration cascade
    max_integration_depth: int = field(default_factory=lambda: _env_int("ALGEBRUM_MAX_INTEGRATION_DEPTH", 10))
    max_parts_depth: int = 3

    # Polynomial dispatch
    max_euclid_iterations: int = 64
    max_expand_power: int = 64


_CONFIG = EngineConfig()


def get_config() -> EngineConfig:
    """Return the process-wide configuration."""
    return _CONFIG


def configure(**overrides) -> EngineConfig:
    """
    Replace configuration fields.

    Args:
        **overrides: Field names of EngineConfig and their new values

    Returns:
        The new process-wide configuration

    Raises:
        TypeError: If an unknown field is given
    """
    global _CONFIG
    known = {f.name for f in fields(EngineConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")
    _CONFIG = replace(_CONFIG, **overrides)
    if "cache_capacity" in overrides:
        # Imported here: the simplifier imports this module at load time
        from .simplify import resize_cache
        resize_cache(_CONFIG.cache_capacity)
    return _CONFIG
