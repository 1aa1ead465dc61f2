"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cost-unit accounting against the upstream provider's periodic budget.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from ..types import QuotaStatus
from .contracts import QuotaPolicy
from .keys import normalize_identity
from .sweeper import PeriodicSweeper

logger = logging.getLogger("quotashield.runtime.quota")


class QuotaManager:
    """
    Track units consumed in the current period, globally and per identity.

    The budget check is an advisory gate: callers read ``get_status`` and
    decide whether to proceed, then ``charge`` after the upstream call.
    Concurrent callers that all passed the gate may overshoot the budget
    briefly; the overshoot is logged rather than refused.
    """

    def __init__(
        self,
        policy: QuotaPolicy | None = None,
        *,
        sweep_interval_s: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy = policy or QuotaPolicy()
        self._clock = clock
        self._units_used = 0
        self._by_identity: dict[str, int] = {}
        self._period_start, self._reset_at = self._period_bounds(clock())
        self._sweeper = PeriodicSweeper(
            self._sweep, interval_s=sweep_interval_s, name="quota"
        )
        self._sweeper.ensure_started()

    def _period_bounds(self, now: float) -> tuple[float, float]:
        offset = self.policy.period_offset_s
        index = math.floor((now - offset) / self.policy.period_s)
        start = offset + index * self.policy.period_s
        return start, start + self.policy.period_s

    def _roll_period(self) -> bool:
        now = self._clock()
        if now < self._reset_at:
            return False
        logger.info(
            "Quota period reset (units_used=%d, identities=%d)",
            self._units_used,
            len(self._by_identity),
        )
        self._units_used = 0
        self._by_identity.clear()
        self._period_start, self._reset_at = self._period_bounds(now)
        return True

    def _sweep(self) -> int:
        tracked = len(self._by_identity)
        return tracked if self._roll_period() else 0

    @property
    def reset_at(self) -> float:
        self._roll_period()
        return self._reset_at

    def seconds_until_reset(self) -> int:
        reset_at = self.reset_at
        return max(1, math.ceil(reset_at - self._clock()))

    def get_status(self, identity: str | None = None) -> QuotaStatus:
        """
        Return usage for the current period.

        With `identity`, usage is that identity's; remaining is capped by both
        the identity budget (when configured) and the global budget.
        """
        self._sweeper.ensure_started()
        self._roll_period()
        global_remaining = max(0, self.policy.budget_units - self._units_used)

        if identity is None:
            return QuotaStatus(
                units_used=self._units_used,
                units_remaining=global_remaining,
                reset_at=self._reset_at,
                budget_units=self.policy.budget_units,
            )

        key = normalize_identity(identity)
        used = self._by_identity.get(key, 0)
        remaining = global_remaining
        budget = self.policy.budget_units
        if self.policy.per_identity_budget_units is not None:
            budget = self.policy.per_identity_budget_units
            remaining = min(remaining, max(0, budget - used))
        return QuotaStatus(
            units_used=used,
            units_remaining=remaining,
            reset_at=self._reset_at,
            budget_units=budget,
            identity=key,
        )

    def charge(self, units: int, identity: str | None = None) -> None:
        """Record `units` consumed; never raises. Negative units count as zero."""
        self._sweeper.ensure_started()
        self._roll_period()
        units = max(0, int(units))
        if units == 0:
            return
        self._units_used += units
        if identity is not None:
            key = normalize_identity(identity)
            self._by_identity[key] = self._by_identity.get(key, 0) + units
        if self._units_used > self.policy.budget_units:
            logger.warning(
                "Quota budget overshot (units_used=%d, budget=%d)",
                self._units_used,
                self.policy.budget_units,
            )

    def usage_by_identity(self) -> dict[str, int]:
        self._roll_period()
        return dict(self._by_identity)

    def stats(self) -> dict[str, float | int]:
        status = self.get_status()
        return {
            "total_units_used": status.units_used,
            "total_units_remaining": status.units_remaining,
            "active_identities": len(self._by_identity),
            "reset_at": status.reset_at,
        }

    async def shutdown(self) -> None:
        await self._sweeper.stop()
