"""Read-through cache for expensive aggregate projections."""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TypeVar

from burst_timeline.services.cache import Cache

DEFAULT_TTL_SECONDS = 12 * 60 * 60
DEFAULT_RACE_CONDITION_TTL_SECONDS = 5.0

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass
class AggregateViewCache:
    """Caches projections keyed by view name, fingerprint and filter.

    Entries are never invalidated explicitly: a new fingerprint produces a new
    key. The TTL only bounds growth. Concurrent misses on the same key wait up
    to ``race_condition_ttl_seconds`` for the first caller to store its result
    instead of all recomputing.
    """

    cache: Cache
    namespace: str
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    race_condition_ttl_seconds: float = DEFAULT_RACE_CONDITION_TTL_SECONDS
    _inflight: dict[str, threading.Lock] = field(default_factory=dict, init=False)
    _guard: threading.Lock = field(default_factory=threading.Lock, init=False)

    def get_or_compute(
        self,
        view_name: str,
        fingerprint: str,
        filter_params: Mapping[str, object] | None,
        compute: Callable[[], T],
        force: bool = False,
    ) -> T:
        """Return the cached projection, computing and storing it on a miss."""
        key = self.cache_key(view_name, fingerprint, filter_params)
        if force:
            self.cache.delete(key)
        else:
            cached = self.cache.get(key)
            if cached is not None:
                return cached  # type: ignore[return-value]

        lock = self._key_lock(key)
        acquired = lock.acquire(timeout=self.race_condition_ttl_seconds)
        try:
            if acquired and not force:
                cached = self.cache.get(key)
                if cached is not None:
                    return cached  # type: ignore[return-value]
            if not acquired:
                _logger.warning("Timed out waiting for %s; recomputing", key)
            value = compute()
            self.cache.set(key, value, ttl_seconds=self.ttl_seconds)
            _logger.debug("Stored %s", key)
            return value
        finally:
            if acquired:
                lock.release()
            self._release_key_lock(key, lock)

    def cache_key(
        self,
        view_name: str,
        fingerprint: str,
        filter_params: Mapping[str, object] | None = None,
    ) -> str:
        """Build the deterministic cache key for a projection."""
        descriptor = normalize_filter(filter_params)
        return f"{self.namespace}:v{fingerprint}:{view_name}:{descriptor}"

    def _key_lock(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._inflight.get(key)
            if lock is None:
                lock = threading.Lock()
                self._inflight[key] = lock
            return lock

    def _release_key_lock(self, key: str, lock: threading.Lock) -> None:
        with self._guard:
            if self._inflight.get(key) is lock and not lock.locked():
                self._inflight.pop(key, None)


def normalize_filter(filter_params: Mapping[str, object] | None) -> str:
    """Render filter parameters as a stable ``k=v`` descriptor."""
    if not filter_params:
        return "all"
    parts = []
    for name in sorted(filter_params):
        value = filter_params[name]
        if isinstance(value, bool):
            value = "1" if value else "0"
        parts.append(f"{name}={value}")
    return ",".join(parts)
