"""Tests for the error taxonomy, configuration and the memoization cache."""

import pytest
from algebrum import (
    MathError, DivisionByZero, DomainError, Pole, BranchCut, Undefined,
    NumericOverflow, FeatureNotImplemented, ARITH_ERRORS,
    EngineConfig, get_config, configure, cache_info, clear_cache, simplify, symbol,
)
from algebrum.cache import LRUCache
from algebrum.expr import cos, sin
from algebrum.identities import identity_engine


class TestErrors:
    """Tests for MathError subclasses."""

    def test_hierarchy(self):
        """Every error is a MathError and the matching builtin."""
        assert issubclass(DivisionByZero, ZeroDivisionError)
        assert issubclass(DomainError, ValueError)
        assert issubclass(NumericOverflow, OverflowError)
        assert issubclass(FeatureNotImplemented, NotImplementedError)
        for cls in (DivisionByZero, DomainError, Pole, BranchCut, Undefined,
                    NumericOverflow, FeatureNotImplemented):
            assert issubclass(cls, MathError)

    def test_arith_errors(self):
        """ARITH_ERRORS is the closed-arithmetic pair."""
        assert ARITH_ERRORS == (DivisionByZero, NumericOverflow)

    def test_domain_error_fields(self):
        """DomainError carries operation, value and reason."""
        err = DomainError("sqrt", -1, "negative input")
        assert err.operation == "sqrt"
        assert err.value == -1
        assert "negative input" in str(err)

    def test_to_dict(self):
        """to_dict is JSON friendly."""
        data = Pole("ln", 0.0).to_dict()
        assert data == {"kind": "pole", "message": str(Pole("ln", 0.0)),
                        "function": "ln", "at": 0.0}

    def test_to_dict_reprs_objects(self):
        """Non-primitive fields are stored as repr strings."""
        x = symbol("x")
        data = Undefined(x, "unbound").to_dict()
        assert data["expression"] == "x"
        assert data["reason"] == "unbound"

    def test_default_messages(self):
        """Errors have readable default messages."""
        assert str(DivisionByZero()) == "division by zero"
        assert "not implemented" in str(FeatureNotImplemented("qr"))


class TestConfig:
    """Tests for EngineConfig and configure()."""

    def setup_method(self):
        """Remember the configuration."""
        self.saved = get_config()

    def teardown_method(self):
        """Restore the configuration."""
        configure(**{f: getattr(self.saved, f) for f in (
            "cache_capacity", "max_simplify_passes", "permutation_limit",
            "max_integration_depth", "max_parts_depth",
        )})

    def test_defaults(self):
        """Defaults match the documented values."""
        config = EngineConfig()
        assert config.permutation_limit == 6
        assert config.max_parts_depth == 3
        assert config.max_euclid_iterations == 64

    def test_environment_override(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("ALGEBRUM_MAX_SIMPLIFY_PASSES", "7")
        assert EngineConfig().max_simplify_passes == 7

    def test_bad_environment_value(self, monkeypatch):
        """Non-integer environment values are rejected."""
        monkeypatch.setenv("ALGEBRUM_CACHE_CAPACITY", "lots")
        with pytest.raises(ValueError):
            EngineConfig()

    def test_configure_replaces_fields(self):
        """configure() returns the new process-wide config."""
        config = configure(max_parts_depth=1)
        assert config.max_parts_depth == 1
        assert get_config().max_parts_depth == 1

    def test_configure_unknown_field(self):
        """Unknown fields raise TypeError."""
        with pytest.raises(TypeError):
            configure(colour="blue")

    def test_configure_resizes_cache(self):
        """Changing cache_capacity resizes the simplifier cache."""
        configure(cache_capacity=5)
        assert cache_info()["capacity"] == 5


class TestLRUCache:
    """Tests for the bounded cache."""

    def test_get_put(self):
        """Stored values come back; missing keys give None."""
        cache = LRUCache(2)
        cache.put("a", 1)
        assert cache.get("a") == 1
        assert cache.get("b") is None

    def test_eviction_order(self):
        """The least recently used entry is evicted."""
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)
        assert "b" not in cache
        assert "a" in cache
        assert len(cache) == 2

    def test_zero_capacity(self):
        """A zero-capacity cache stores nothing."""
        cache = LRUCache(0)
        cache.put("a", 1)
        assert len(cache) == 0

    def test_resize_evicts(self):
        """Shrinking evicts the oldest entries."""
        cache = LRUCache(3)
        for key in "abc":
            cache.put(key, key)
        cache.resize(1)
        assert "c" in cache
        assert len(cache) == 1

    def test_info_counts(self):
        """Hits and misses are counted."""
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.get("a")
        cache.get("z")
        assert cache.info() == {"size": 1, "capacity": 2, "hits": 1, "misses": 1}

    def test_negative_capacity(self):
        """Negative capacities are rejected."""
        with pytest.raises(ValueError):
            LRUCache(-1)


class TestSimplifierCache:
    """Tests for the process-wide simplifier cache."""

    def test_hit_on_repeat(self):
        """Simplifying the same expression twice hits the cache."""
        clear_cache()
        x = symbol("x")
        simplify(x + x)
        before = cache_info()["hits"]
        simplify(x + x)
        assert cache_info()["hits"] > before

    def test_clear(self):
        """clear_cache empties the cache."""
        simplify(symbol("q") * 2 + 1)
        clear_cache()
        assert cache_info()["size"] == 0

    def test_follows_identity_groups(self):
        """Cached results are not reused after the identity rules change."""
        x = symbol("x")
        expr = sin(x) ** 2 + cos(x) ** 2
        assert simplify(expr) == 1
        engine = identity_engine()
        engine.disable_group("trig")
        try:
            assert simplify(expr) != 1
        finally:
            engine.enable_group("trig")
        assert simplify(expr) == 1
