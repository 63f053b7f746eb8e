"""
Bounded per-key TTL cache used to memoise provider reads.
"""
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from cachetools import Cache, FIFOCache

T = TypeVar("T")

DEFAULT_TTL = 15.0
DEFAULT_MAXSIZE = 100

_MISSING = object()


class _InsertionOrderCache(FIFOCache):
    """FIFOCache whose updates keep the key's original insertion position."""

    def __setitem__(self, key, value, cache_setitem=Cache.__setitem__):
        if key in self:
            cache_setitem(self, key, value)
        else:
            super().__setitem__(key, value)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class ResultCache:
    """
    TTL cache with insertion-order eviction.

    Expired entries are dropped lazily when read. When a new key is inserted at
    capacity the oldest-inserted key goes first. Overwriting an existing key
    never evicts; it refreshes the TTL and keeps the key's insertion position.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        maxsize: int = DEFAULT_MAXSIZE,
        timer: Callable[[], float] = time.monotonic
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.ttl = ttl
        self.maxsize = maxsize
        self._timer = timer
        self._entries: FIFOCache = _InsertionOrderCache(maxsize=maxsize)
        self._lock = threading.RLock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._timer() >= entry.expires_at:
                del self._entries[key]
                return default
            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value, self._timer() + self.ttl)

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
