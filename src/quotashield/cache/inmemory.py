"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/inmemory.py.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from ..utils import short_key
from ..runtime.contracts import CachePolicy
from ..runtime.sweeper import PeriodicSweeper
from .base import CacheEntry, CacheLookup, ResponseCacheBackend

logger = logging.getLogger("quotashield.cache.inmemory")


def _lookup(entry: CacheEntry, *, is_stale: bool) -> CacheLookup:
    return CacheLookup(
        value=entry.value,
        is_stale=is_stale,
        stored_at=entry.stored_at,
        expires_at=entry.expires_at,
        revalidation_failed=entry.revalidation_failed,
    )


class InMemoryResponseCache(ResponseCacheBackend):
    """
    Process-local TTL cache with optional stale-while-revalidate.

    Expired entries are kept for ``stale_grace_s`` seconds so they can serve
    as a fallback when the upstream fails; the periodic sweep drops them
    afterwards. The cache never refreshes itself: revalidation is driven by
    the orchestrator.
    """

    backend_id = "inmemory"

    def __init__(
        self,
        policy: CachePolicy | None = None,
        *,
        sweep_interval_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or CachePolicy()
        self._rows: dict[str, CacheEntry] = {}
        self._clock = clock
        self._hits = 0
        self._stale_hits = 0
        self._misses = 0
        self._sweeper = PeriodicSweeper(
            self.sweep, interval_s=sweep_interval_s, name="cache"
        )
        self._sweeper.ensure_started()

    @property
    def stale_while_revalidate(self) -> bool:
        return self.policy.stale_while_revalidate

    def _held(self, key: str, now: float) -> CacheEntry | None:
        row = self._rows.get(key)
        if row is None:
            return None
        if row.expires_at + self.policy.stale_grace_s <= now:
            self._rows.pop(key, None)
            return None
        return row

    async def get(self, key: str) -> CacheLookup | None:
        self._sweeper.ensure_started()
        now = self._clock()
        row = self._held(key, now)
        if row is None:
            self._misses += 1
            return None
        if now < row.expires_at:
            self._hits += 1
            return _lookup(row, is_stale=False)
        if self.policy.stale_while_revalidate:
            self._stale_hits += 1
            return _lookup(row, is_stale=True)
        self._misses += 1
        return None

    async def get_stale(self, key: str) -> CacheLookup | None:
        """Return any held entry, expired or not; used for error fallback."""
        now = self._clock()
        row = self._held(key, now)
        if row is None:
            return None
        return _lookup(row, is_stale=now >= row.expires_at)

    async def set(self, key: str, value: object, *, ttl_s: float) -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self._sweeper.ensure_started()
        now = self._clock()
        self._rows[key] = CacheEntry(value=value, stored_at=now, expires_at=now + ttl_s)
        logger.debug("Cached response (key=%s, ttl=%.0fs)", short_key(key), ttl_s)

    async def delete(self, key: str) -> None:
        self._rows.pop(key, None)

    async def mark_revalidation_failed(self, key: str) -> None:
        row = self._rows.get(key)
        if row is not None and not row.revalidation_failed:
            self._rows[key] = replace(row, revalidation_failed=True)

    async def clear(self, pattern: str | None = None) -> int:
        """Drop every entry, or only those whose key contains `pattern`."""
        if pattern is None:
            removed = len(self._rows)
            self._rows.clear()
            return removed
        keys = [key for key in self._rows if pattern in key]
        for key in keys:
            del self._rows[key]
        return len(keys)

    def sweep(self) -> int:
        """Evict entries past expiry plus the stale grace window."""
        now = self._clock()
        expired = [
            key
            for key, row in self._rows.items()
            if row.expires_at + self.policy.stale_grace_s <= now
        ]
        for key in expired:
            del self._rows[key]
        return len(expired)

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._rows),
            "hits": self._hits,
            "stale_hits": self._stale_hits,
            "misses": self._misses,
        }

    async def shutdown(self) -> None:
        await self._sweeper.stop()
