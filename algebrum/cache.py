"""Bounded, thread-safe memoization cache used by the simplifier."""

import logging
import threading
from collections import OrderedDict
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class LRUCache:
    """
    Least-recently-used cache with a fixed capacity.

    All operations take a single lock. Values are never None (a None
    result from get() means "not cached").

    Example:
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")      # => 1, "a" becomes most recent
        cache.put("c", 3)   # evicts "b"
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self._capacity = capacity
        self._data: "OrderedDict[Hashable, object]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: Hashable) -> Optional[object]:
        with self._lock:
            try:
                value = self._data[key]
            except KeyError:
                self._misses += 1
                return None
            self._data.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: Hashable, value: object) -> None:
        with self._lock:
            if self._capacity == 0:
                return
            self._data[key] = value
            self._data.move_to_end(key)
            self._evict()

    def _evict(self) -> None:
        while len(self._data) > self._capacity:
            key, _ = self._data.popitem(last=False)
            logger.debug("cache eviction: %r", key)

    def resize(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        with self._lock:
            self._capacity = capacity
            self._evict()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0

    def info(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._data),
                "capacity": self._capacity,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __repr__(self) -> str:
        return f"LRUCache({len(self)}/{self._capacity})"
