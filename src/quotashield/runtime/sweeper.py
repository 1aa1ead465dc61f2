"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Owned periodic background task used by services to evict idle state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger("quotashield.runtime.sweeper")


class PeriodicSweeper:
    """
    Run `callback` every `interval_s` seconds on the running event loop.

    The task is created by ``ensure_started()`` and cancelled by ``stop()``.
    A stopped sweeper starts again on the next ``ensure_started()``, so a
    service outlives repeated app lifespans or event loops.
    Services call ``ensure_started()`` at construction and again on each
    operation, so construction outside a running loop defers the start to the
    first call made inside one.
    """

    def __init__(
        self,
        callback: Callable[[], int],
        *,
        interval_s: float,
        name: str,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._callback = callback
        self._interval_s = interval_s
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_started(self) -> bool:
        """Start the loop on the running event loop unless it already runs there."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        if self.is_running and self._task.get_loop() is loop:
            return False
        self._task = loop.create_task(self._loop(), name=f"quotashield-sweep-{self._name}")
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                removed = self._callback()
            except Exception:  # noqa: BLE001
                logger.exception("Sweep failed (sweeper=%s)", self._name)
                continue
            if removed:
                logger.debug("Sweep removed %d entries (sweeper=%s)", removed, self._name)

    async def stop(self) -> None:
        """Cancel the background task; ``ensure_started()`` may start it again."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task.get_loop() is not asyncio.get_running_loop():
            # Its loop is gone or foreign; the task cannot be awaited from here.
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
