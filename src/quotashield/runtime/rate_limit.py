"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/rate_limit.py.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..types import RateLimitDecision
from .contracts import RateLimitPolicy
from .keys import normalize_identity
from .sweeper import PeriodicSweeper

logger = logging.getLogger("quotashield.runtime.rate_limit")


@dataclass(slots=True)
class _Window:
    """Data type for window."""

    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Fixed-window admission control keyed by caller identity.

    Windows reset at fixed boundaries, so a caller may get up to twice
    ``max_requests`` through in a short span straddling a boundary.
    """

    def __init__(
        self,
        policy: RateLimitPolicy | None = None,
        *,
        name: str = "default",
        sweep_interval_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or RateLimitPolicy()
        self.name = name
        self._rows: dict[str, _Window] = {}
        self._clock = clock
        self._sweeper = PeriodicSweeper(
            self.sweep, interval_s=sweep_interval_s, name=f"rate-limit-{name}"
        )
        self._sweeper.ensure_started()

    def check_and_increment(self, identity: str | None) -> RateLimitDecision:
        """Admit or reject one call for `identity`."""
        self._sweeper.ensure_started()
        key = normalize_identity(identity)
        now = self._clock()
        window = self._rows.get(key)

        if window is None or now >= window.reset_at:
            window = _Window(count=1, reset_at=now + self.policy.window_s)
            self._rows[key] = window
            return RateLimitDecision(
                allowed=True,
                remaining=self.policy.max_requests - 1,
                reset_at=window.reset_at,
            )

        if window.count < self.policy.max_requests:
            window.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=self.policy.max_requests - window.count,
                reset_at=window.reset_at,
            )

        retry_after_s = max(1, math.ceil(window.reset_at - now))
        logger.info(
            "Rate limit exceeded (limiter=%s, identity=%s, retry_after=%ss)",
            self.name,
            key,
            retry_after_s,
        )
        return RateLimitDecision(
            allowed=False,
            retry_after_s=retry_after_s,
            remaining=0,
            reset_at=window.reset_at,
        )

    def remaining(self, identity: str | None) -> int:
        """Calls still admissible for `identity` in the current window."""
        window = self._rows.get(normalize_identity(identity))
        if window is None or self._clock() >= window.reset_at:
            return self.policy.max_requests
        return max(0, self.policy.max_requests - window.count)

    def sweep(self) -> int:
        """Drop expired windows; returns the number removed."""
        now = self._clock()
        expired = [key for key, window in self._rows.items() if now >= window.reset_at]
        for key in expired:
            del self._rows[key]
        return len(expired)

    def stats(self) -> dict[str, int]:
        return {
            "active_windows": len(self._rows),
            "total_requests": sum(window.count for window in self._rows.values()),
        }

    async def shutdown(self) -> None:
        await self._sweeper.stop()
