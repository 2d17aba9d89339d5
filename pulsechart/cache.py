"""Small in-memory TTL cache for computed momentum results."""

import threading
import time
from typing import Any, Callable, Hashable, Optional, TypeVar

T = TypeVar("T")


class TTLCache:
    """Thread-safe key/value cache whose entries expire after a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() > expires_at:
                del self._entries[key]
                return None
            return value

    def _evict_expired(self, now: float) -> None:
        for key in [k for k, (exp, _) in self._entries.items() if now > exp]:
            del self._entries[key]

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            now = self._clock()
            # Keys embed snapshot timestamps, so stale ones are never read again
            self._evict_expired(now)
            self._entries[key] = (now + ttl, value)

    def wrap(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the cached value for key, computing and storing it on a miss."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.set(key, value)
        return value

    def clear(self, key: Optional[Hashable] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._entries)
