"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Typed runtime policies for quota-protected upstream execution.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry semantics for one upstream call."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    jitter_s: float = 0.0
    max_delay_s: float | None = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        if self.base_delay_s < 0:
            raise ConfigurationError("base_delay_s must be >= 0")
        if self.jitter_s < 0:
            raise ConfigurationError("jitter_s must be >= 0")


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Fixed-window admission policy applied per caller identity."""

    max_requests: int = 5
    window_s: float = 60.0

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ConfigurationError("max_requests must be > 0")
        if self.window_s <= 0:
            raise ConfigurationError("window_s must be > 0")


@dataclass(frozen=True, slots=True)
class QuotaPolicy:
    """
    Cost-unit budget of the upstream provider.

    Periods are aligned to ``period_offset_s`` past the epoch, so the default
    resets at midnight UTC every day.
    """

    budget_units: int = 10_000
    period_s: float = 86_400.0
    period_offset_s: float = 0.0
    per_identity_budget_units: int | None = None

    def __post_init__(self) -> None:
        if self.budget_units <= 0:
            raise ConfigurationError("budget_units must be > 0")
        if self.period_s <= 0:
            raise ConfigurationError("period_s must be > 0")
        if self.per_identity_budget_units is not None and self.per_identity_budget_units <= 0:
            raise ConfigurationError("per_identity_budget_units must be > 0 when set")


@dataclass(frozen=True, slots=True)
class CoalescingPolicy:
    """In-flight request deduplication controls."""

    enabled: bool = True
    ttl_s: float = 300.0
    grace_s: float = 1.0

    def __post_init__(self) -> None:
        if self.ttl_s <= 0:
            raise ConfigurationError("dedup ttl_s must be > 0")
        if self.grace_s < 0:
            raise ConfigurationError("dedup grace_s must be >= 0")


@dataclass(frozen=True, slots=True)
class CachePolicy:
    """Response cache controls."""

    stale_while_revalidate: bool = False
    stale_grace_s: float = 3600.0

    def __post_init__(self) -> None:
        if self.stale_grace_s < 0:
            raise ConfigurationError("stale_grace_s must be >= 0")
