"""Bounded in-memory stores for per-process turn state.

Conversation history and paused approvals live in process memory. Both
are capped so a long-running server does not grow without limit.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

V = TypeVar("V")

_MISSING = object()


class BoundedStore(Generic[V]):
    """Thread-safe map with a size cap and an optional time-to-live.

    Entries expire ``ttl`` seconds after they were last written. When the
    store is full, expired entries are dropped first, then the entry that
    was written least recently.
    """

    def __init__(
        self,
        maxsize: int,
        ttl: float | None = None,
        *,
        name: str = "store",
        clock: Callable[[], float] = time.monotonic,
    ):
        if maxsize < 1:
            raise ValueError(f"{name}: maxsize must be at least 1")
        self.maxsize = maxsize
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[V, float | None]] = OrderedDict()

    @staticmethod
    def _expired(expire_at: float | None, now: float) -> bool:
        return expire_at is not None and now >= expire_at

    def get(self, key: str, default: Any = None) -> V | Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expire_at = entry
            if self._expired(expire_at, self._clock()):
                del self._entries[key]
                return default
            return value

    def pop(self, key: str, default: Any = None) -> V | Any:
        """Remove and return ``key``. Expired entries count as missing."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return default
        value, expire_at = entry
        if self._expired(expire_at, self._clock()):
            logger.debug(f"{self.name}: {key} expired")
            return default
        return value

    def set(self, key: str, value: V) -> None:
        now = self._clock()
        expire_at = now + self.ttl if self.ttl is not None else None
        with self._lock:
            self._entries.pop(key, None)
            if len(self._entries) >= self.maxsize:
                self._evict(now)
            self._entries[key] = (value, expire_at)

    def _evict(self, now: float) -> None:
        expired = [k for k, (_, expire_at) in self._entries.items() if self._expired(expire_at, now)]
        for key in expired:
            del self._entries[key]
        while len(self._entries) >= self.maxsize:
            key, _ = self._entries.popitem(last=False)
            logger.debug(f"{self.name}: evicted {key} (maxsize={self.maxsize})")

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
