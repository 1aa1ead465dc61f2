"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/coalescing.py.

Assumes a single event loop: map lookups and inserts happen between
suspension points, so no lock guards ``_entries``. A port to threads needs one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..utils import short_key
from .sweeper import PeriodicSweeper

logger = logging.getLogger("quotashield.runtime.coalescing")

T = TypeVar("T")


@dataclass(slots=True)
class InFlightEntry:
    """Pending shared call for one key."""

    task: asyncio.Future[Any]
    created_at: float
    ttl_s: float


class RequestCoalescer:
    """Deduplicate identical in-flight requests."""

    def __init__(
        self,
        *,
        grace_s: float = 1.0,
        default_ttl_s: float = 300.0,
        sweep_interval_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if grace_s < 0:
            raise ValueError("grace_s must be >= 0")
        if default_ttl_s <= 0:
            raise ValueError("default_ttl_s must be > 0")
        self._entries: dict[str, InFlightEntry] = {}
        self._grace_s = grace_s
        self._default_ttl_s = default_ttl_s
        self._clock = clock
        self._total_requests = 0
        self._coalesced_requests = 0
        self._sweeper = PeriodicSweeper(
            self.sweep, interval_s=sweep_interval_s, name="coalescer"
        )
        self._sweeper.ensure_started()

    async def deduplicate(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_s: float | None = None,
    ) -> T:
        """
        Run `factory` at most once for concurrent callers sharing `key`.

        Callers arriving while an entry younger than its ttl exists await the
        same task and observe the same value or exception. Each caller awaits
        through ``asyncio.shield``: cancelling one caller never cancels the
        shared call. The entry is dropped ``grace_s`` seconds after it settles.
        """
        self._sweeper.ensure_started()
        self._total_requests += 1
        now = self._clock()

        existing = self._entries.get(key)
        if existing is not None and now - existing.created_at < existing.ttl_s:
            self._coalesced_requests += 1
            logger.debug("Coalescing request (key=%s)", short_key(key))
            return await asyncio.shield(existing.task)

        task = asyncio.ensure_future(factory())
        entry = InFlightEntry(
            task=task,
            created_at=now,
            ttl_s=self._default_ttl_s if ttl_s is None else ttl_s,
        )
        self._entries[key] = entry
        task.add_done_callback(lambda done: self._on_settled(key, entry, done))
        logger.debug("Starting shared request (key=%s)", short_key(key))
        return await asyncio.shield(task)

    def _on_settled(self, key: str, entry: InFlightEntry, task: asyncio.Future[Any]) -> None:
        # Mark the exception retrieved even if every caller was cancelled.
        if not task.cancelled():
            task.exception()
        if self._grace_s <= 0:
            self._release(key, entry)
            return
        asyncio.get_running_loop().call_later(self._grace_s, self._release, key, entry)

    def _release(self, key: str, entry: InFlightEntry) -> None:
        # A newer entry may own the key by now.
        if self._entries.get(key) is entry:
            del self._entries[key]

    def sweep(self) -> int:
        """Drop entries older than their ttl; returns the number removed."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.created_at >= entry.ttl_s
        ]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def in_flight(self, key: str) -> bool:
        return key in self._entries

    def clear(self) -> None:
        """Forget all entries; running calls are left to complete."""
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        return {
            "in_flight": len(self._entries),
            "total_requests": self._total_requests,
            "coalesced_requests": self._coalesced_requests,
        }

    async def shutdown(self) -> None:
        await self._sweeper.stop()
        self.clear()
