"""
Short-lived result cache keyed by (tenant, normalized query, k).
Entries expire after a TTL; when full, the oldest entry is evicted.
"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """Small insertion-ordered TTL cache built on a dict."""

    def __init__(self, ttl_sec: float = 300, max_size: int = 1000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_sec:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if self.ttl_sec <= 0 or self.max_size <= 0:
            return

        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries), None)
            if oldest is None:
                break
            self._entries.pop(oldest, None)

        self._entries[key] = (self._clock(), value)

    def invalidate(self, predicate: Callable[[Hashable], bool] = None) -> None:
        """Drop every entry, or only those whose key matches the predicate."""
        if predicate is None:
            self._entries.clear()
            return
        for key in [k for k in list(self._entries) if predicate(k)]:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
