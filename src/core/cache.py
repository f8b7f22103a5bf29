"""Small in-memory TTL cache with LRU eviction.

Used by the tool layer to keep resolver sessions (and everything they
have discovered) alive between calls for a bounded time.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float  # time.monotonic()


class TTLCache(Generic[T]):
    def __init__(self, *, ttl_seconds: float, maxsize: int) -> None:
        self._ttl = float(ttl_seconds)
        self._maxsize = max(1, int(maxsize))
        self._store: "OrderedDict[Hashable, CacheEntry[T]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._store.get(key)
        if entry is None:
            return None

        if time.monotonic() >= entry.expires_at:
            self._store.pop(key, None)
            return None

        # most recently used goes last
        self._store.move_to_end(key, last=True)
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        self._store[key] = CacheEntry(value=value, expires_at=time.monotonic() + self._ttl)
        self._store.move_to_end(key, last=True)

        while len(self._store) > self._maxsize:
            self._store.popitem(last=False)

    def get_or_create(self, key: Hashable, factory: Callable[[], T]) -> T:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._store)
