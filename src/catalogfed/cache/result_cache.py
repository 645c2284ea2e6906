"""Result Cache — TTL-bounded memoization of federated search results.

Federated searches are expensive (one backend call per collection), and
catalog pages repeat the same queries constantly.  ``ResultCache`` keeps
each result for a bounded time window:

  - Keys are SHA-256 digests of a canonical JSON rendering of every
    argument that affects the result.
  - Hits within ``ttl`` skip the producer entirely.
  - Expired entries are swept on every call; ``max_entries`` caps the table.

The cache is not coherent with writes: an update does not purge entries, so
a write becomes visible to cached queries at most ``ttl`` seconds later.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

_T = TypeVar("_T")

logger = logging.getLogger(__name__)


def _canonical(value: Any) -> Any:
    """Convert ``value`` into a JSON-serializable form with a stable ordering."""
    if isinstance(value, BaseModel):
        return _canonical(value.model_dump(mode="json", by_alias=True))
    if isinstance(value, Enum):
        return _canonical(value.value)
    # 1.0 and 1 are the same query value to the backend.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, set | frozenset):
        return sorted((_canonical(v) for v in value), key=lambda v: json.dumps(v, sort_keys=True, default=str))
    if isinstance(value, list | tuple):
        return [_canonical(v) for v in value]
    return value


def make_key(*parts: Any, **named: Any) -> str:
    """Derive a deterministic cache key from call arguments.

    Dict ordering and set ordering never change the key; pydantic models are
    keyed by their JSON dump.

    Example:
        >>> make_key("search", {"b": 1, "a": 2}) == make_key("search", {"a": 2, "b": 1})
        True
    """
    payload = json.dumps(
        {"args": _canonical(list(parts)), "kwargs": _canonical(named)},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def federation_key(query: Any, collections: Iterable[str], mode: Any) -> str:
    """Cache key of a federated search: the query, the collection *set* and the mode."""
    return make_key("federated_search", query=query, collections=frozenset(collections), mode=mode)


@dataclass
class CacheStats:
    """Counters exposed for monitoring."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0


@dataclass
class _Entry:
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class ResultCache:
    """In-memory TTL cache for async producers.

    The table is guarded by a lock that is never held across an ``await``.
    Concurrent misses on one key are not coalesced: each runs the producer
    and the last result stored wins.

    Args:
        default_ttl: TTL in seconds used when a call does not pass one.
        max_entries: Optional capacity; the oldest entries are evicted beyond it.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        default_ttl: float = 30.0,
        max_entries: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats()

    async def get_or_call(
        self,
        key: str,
        producer: Callable[[], Awaitable[_T]],
        ttl: float | None = None,
        should_cache: Callable[[_T], bool] | None = None,
    ) -> _T:
        """Return the cached value for ``key`` or run ``producer`` and cache its result.

        Args:
            key: Cache key, normally from ``make_key``.
            producer: Zero-argument coroutine factory computing the value.
            ttl: Lifetime in seconds (defaults to ``default_ttl``).
            should_cache: Optional predicate; results it rejects are returned but not stored.

        Returns:
            The cached or freshly produced value.  Producer exceptions propagate
            and nothing is stored.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return await producer()

        with self._lock:
            now = self._clock()
            self._sweep(now)
            entry = self._entries.get(key)
            if entry is not None:
                self._stats.hits += 1
                logger.debug("Cache hit: %s", key)
                return entry.value
            self._stats.misses += 1

        logger.debug("Cache miss: %s", key)
        value = await producer()

        if should_cache is None or should_cache(value):
            with self._lock:
                self._entries.pop(key, None)
                self._entries[key] = _Entry(value=value, stored_at=self._clock(), ttl=ttl)
                self._enforce_capacity()
        return value

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                size=len(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Internals (caller holds the lock) ────────────────────────────────

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        self._stats.evictions += len(expired)

    def _enforce_capacity(self) -> None:
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self._stats.evictions += 1
