"""Time-bounded key/value cache.

Backed by ``cachetools.TTLCache``. Inserting sweeps every expired entry
first; reads of expired entries return ``None`` without removing them, so
storage only shrinks on the next insert or on :meth:`ExpiringMap.clear`.
There is no size-based eviction: the key space (principal ids, group ids
and scopes visited in one run) is small and short-lived.
"""

from __future__ import annotations

import sys
import threading
import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ExpiringMap(Generic[K, V]):
    """Mapping whose entries expire a fixed TTL after insertion.

    Every operation takes an internal lock for its own duration only, so
    the map can be shared between tasks and threads. Never hold results
    across a network call expecting them to stay fresh.

    Args:
        ttl: Entry lifetime in seconds.
        timer: Monotonic clock, injectable for tests.

    Example:
        >>> cache: ExpiringMap[str, str] = ExpiringMap(ttl=60)
        >>> cache.insert("key", "value")
        >>> cache.get("key")
        'value'
    """

    def __init__(self, ttl: float, timer: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._timer = timer
        self._data: TTLCache[K, V] = TTLCache(maxsize=sys.maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def insert(self, key: K, value: V) -> V | None:
        """Sweep expired entries, then store ``value`` under ``key``.

        Returns:
            The previous live value for ``key``, if any.
        """
        with self._lock:
            self._data.expire()
            previous = self._data.get(key)
            self._data[key] = value
            return previous

    def get(self, key: K) -> V | None:
        """Return the live value for ``key``; ``None`` if absent or expired."""
        with self._lock:
            return self._data.get(key)

    def contains_key(self, key: K) -> bool:
        """True if ``key`` holds a live entry, even a ``None`` one."""
        with self._lock:
            return key in self._data

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def stored(self) -> int:
        """Number of entries held by the underlying store."""
        with self._lock:
            return len(self._data)
