from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Callable, Generic, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[K, V]):
    """In-memory TTL cache, optionally bounded (oldest insert evicted first)."""

    def __init__(
        self,
        default_ttl_seconds: int = 120,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_ttl = max(1, int(default_ttl_seconds))
        self._max_size = max_size
        self._clock = clock
        self._store: dict[K, _Entry[V]] = {}

    def get(self, key: K) -> Optional[V]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at < self._clock():
            self._store.pop(key, None)
            return None
        return entry.value

    def set(self, key: K, value: V, ttl_seconds: Optional[int] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else max(1, int(ttl_seconds))
        # re-inserting moves the key to the young end
        self._store.pop(key, None)
        self._store[key] = _Entry(value=value, expires_at=self._clock() + ttl)
        if self._max_size is not None:
            while len(self._store) > self._max_size:
                self._store.pop(next(iter(self._store)))

    def pop(self, key: K) -> Optional[V]:
        value = self.get(key)
        self._store.pop(key, None)
        return value

    def prune(self) -> int:
        now = self._clock()
        stale = [k for k, v in self._store.items() if v.expires_at < now]
        for k in stale:
            self._store.pop(k, None)
        return len(stale)

    def __len__(self) -> int:
        return len(self._store)
