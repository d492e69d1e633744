"""In-memory TTL cache for immutable ledger reads."""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from common.constants import QUERY_CACHE_MAX_ENTRIES, QUERY_CACHE_TTL_SECONDS


class QueryCache:
    """
    Thread-safe key/value cache whose entries expire after a TTL.

    Expired entries are swept on every write, and once max_entries is
    reached the oldest entry is evicted. Owned by the client that uses it;
    tests build their own instance.
    """

    def __init__(
        self,
        default_ttl: float = QUERY_CACHE_TTL_SECONDS,
        max_entries: int = QUERY_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        # Insertion order is write order, oldest first
        self._entries: Dict[str, Tuple[Any, float, float]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._remove_expired(now)
            while len(self._entries) >= self.max_entries:
                del self._entries[next(iter(self._entries))]
            self._entries[key] = (value, now, self.default_ttl if ttl is None else ttl)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at, ttl = entry
            if self._clock() - stored_at > ttl:
                del self._entries[key]
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """
        Drop expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            return self._remove_expired(now)

    def _remove_expired(self, now: float) -> int:
        expired = [key for key, (_, stored_at, ttl) in self._entries.items() if now - stored_at > ttl]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
