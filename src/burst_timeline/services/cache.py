"""Key-value cache abstractions."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Cache(Protocol):
    """Cache interface for expiring key-value data."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: float) -> None:
        """Store a cached value with a TTL in seconds."""

    def delete(self, key: str) -> None:
        """Remove a cached value if present."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class _CacheEntry:
    value: object
    expires_at: datetime


@dataclass
class InMemoryCache(Cache):
    """Process-local cache shared by request threads."""

    clock: Callable[[], datetime] = field(default=_utcnow)
    _entries: dict[str, _CacheEntry] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def get(self, key: str) -> object | None:
        """Return a cached value if it hasn't expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.clock() >= entry.expires_at:
                self._entries.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: object, ttl_seconds: float) -> None:
        """Store a cached value with a TTL, dropping entries that have expired."""
        now = self.clock()
        with self._lock:
            # Keys of superseded fingerprints are never read again.
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for expired_key in expired:
                del self._entries[expired_key]
            self._entries[key] = _CacheEntry(
                value=value, expires_at=now + timedelta(seconds=ttl_seconds)
            )

    def delete(self, key: str) -> None:
        """Drop a cached value."""
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
