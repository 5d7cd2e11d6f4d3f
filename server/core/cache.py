"""In-process TTL cache.

Single-process, in-memory key/value store with per-entry expiry. Entries are
evicted lazily: a stale entry is removed the moment a read observes it, there
is no background sweep and no size bound.

Methods are synchronous on purpose. Callers run on one asyncio event loop, so
a read followed by a write never interleaves with another coroutine unless
there is an ``await`` between them.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Stored value plus its absolute expiry (clock seconds)."""
    value: Any
    expires_at: float


class TTLCache:
    """Key/value store where every entry carries its own time-to-live.

    Args:
        name: Label used in log records.
        clock: Monotonic time source in seconds. Tests pass a fake clock.
    """

    def __init__(self, name: str = "cache", clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the value for ``key`` or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            log_cache_operation(logger, "get", key, hit=False, cache=self.name)
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            log_cache_operation(logger, "get", key, hit=False, cache=self.name, expired=True)
            return None

        log_cache_operation(logger, "get", key, hit=True, cache=self.name)
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds, replacing any entry."""
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        log_cache_operation(logger, "set", key, ttl=ttl, cache=self.name)

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if an entry was present."""
        deleted = self._entries.pop(key, None) is not None
        log_cache_operation(logger, "delete", key, deleted=deleted, cache=self.name)
        return deleted

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        # Counts stored entries, including ones not yet observed as stale.
        return len(self._entries)
