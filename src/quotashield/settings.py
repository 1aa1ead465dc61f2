"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Runtime settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .runtime.contracts import (
    CachePolicy,
    CoalescingPolicy,
    QuotaPolicy,
    RateLimitPolicy,
    RetryPolicy,
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{raw}'")


def _env_optional_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    if raw.strip().lower() in ("none", "off", "0"):
        return None
    return int(raw)


@dataclass(frozen=True, slots=True)
class FeatureTTLs:
    """Cache lifetimes chosen per feature call site."""

    search_s: float = 6 * 3600.0
    video_details_s: float = 24 * 3600.0
    recommendations_s: float = 12 * 3600.0


@dataclass(frozen=True, slots=True)
class QuotaShieldSettings:
    """Explicit settings used by the orchestration runtime and HTTP host."""

    youtube_api_key: str | None = None
    youtube_base_url: str = "https://www.googleapis.com/youtube/v3"
    youtube_timeout_s: float = 10.0
    youtube_region_code: str | None = "US"

    max_retries: int = 3
    backoff_base_s: float = 1.0
    backoff_jitter_s: float = 0.0
    backoff_max_s: float = 30.0

    quota_budget_units: int = 10_000
    quota_period_s: float = 86_400.0
    quota_period_offset_s: float = 0.0
    # 15 searches of 100 units per identity per period; None disables the cap.
    quota_per_identity_units: int | None = 1500

    rate_limit_max_requests: int = 5
    rate_limit_window_s: float = 60.0
    recommendations_rate_limit_max_requests: int = 5
    recommendations_rate_limit_window_s: float = 60.0
    videos_rate_limit_max_requests: int = 10
    videos_rate_limit_window_s: float = 30.0

    cache_backend: str = "inmemory"
    cache_stale_while_revalidate: bool = False
    cache_stale_grace_s: float = 3600.0

    dedup_enabled: bool = True
    dedup_ttl_s: float = 300.0
    dedup_grace_s: float = 1.0

    cache_sweep_interval_s: float = 60.0
    dedup_sweep_interval_s: float = 30.0
    rate_limit_sweep_interval_s: float = 60.0
    quota_sweep_interval_s: float = 300.0

    search_ttl_s: float = 6 * 3600.0
    video_details_ttl_s: float = 24 * 3600.0
    recommendations_ttl_s: float = 12 * 3600.0

    host: str = "127.0.0.1"
    port: int = 8000
    metrics_backend: str = "none"

    @staticmethod
    def from_env() -> "QuotaShieldSettings":
        """Load settings from environment variables."""
        return QuotaShieldSettings(
            youtube_api_key=os.getenv("QUOTASHIELD_YOUTUBE_API_KEY")
            or os.getenv("YOUTUBE_API_KEY"),
            youtube_base_url=os.getenv(
                "QUOTASHIELD_YOUTUBE_BASE_URL", "https://www.googleapis.com/youtube/v3"
            ),
            youtube_timeout_s=float(os.getenv("QUOTASHIELD_YOUTUBE_TIMEOUT_S", "10")),
            youtube_region_code=os.getenv("QUOTASHIELD_YOUTUBE_REGION_CODE", "US") or None,
            max_retries=int(os.getenv("QUOTASHIELD_MAX_RETRIES", "3")),
            backoff_base_s=float(os.getenv("QUOTASHIELD_BACKOFF_BASE_S", "1.0")),
            backoff_jitter_s=float(os.getenv("QUOTASHIELD_BACKOFF_JITTER_S", "0")),
            backoff_max_s=float(os.getenv("QUOTASHIELD_BACKOFF_MAX_S", "30")),
            quota_budget_units=int(os.getenv("QUOTASHIELD_QUOTA_BUDGET_UNITS", "10000")),
            quota_period_s=float(os.getenv("QUOTASHIELD_QUOTA_PERIOD_S", "86400")),
            quota_period_offset_s=float(os.getenv("QUOTASHIELD_QUOTA_PERIOD_OFFSET_S", "0")),
            quota_per_identity_units=_env_optional_int("QUOTASHIELD_QUOTA_PER_IDENTITY_UNITS", 1500),
            rate_limit_max_requests=int(os.getenv("QUOTASHIELD_RATE_LIMIT_MAX_REQUESTS", "5")),
            rate_limit_window_s=float(os.getenv("QUOTASHIELD_RATE_LIMIT_WINDOW_S", "60")),
            recommendations_rate_limit_max_requests=int(
                os.getenv("QUOTASHIELD_RECOMMENDATIONS_RATE_LIMIT_MAX_REQUESTS", "5")
            ),
            recommendations_rate_limit_window_s=float(
                os.getenv("QUOTASHIELD_RECOMMENDATIONS_RATE_LIMIT_WINDOW_S", "60")
            ),
            videos_rate_limit_max_requests=int(
                os.getenv("QUOTASHIELD_VIDEOS_RATE_LIMIT_MAX_REQUESTS", "10")
            ),
            videos_rate_limit_window_s=float(
                os.getenv("QUOTASHIELD_VIDEOS_RATE_LIMIT_WINDOW_S", "30")
            ),
            cache_backend=os.getenv("QUOTASHIELD_CACHE_BACKEND", "inmemory").strip().lower(),
            cache_stale_while_revalidate=_env_bool("QUOTASHIELD_CACHE_SWR", False),
            cache_stale_grace_s=float(os.getenv("QUOTASHIELD_CACHE_STALE_GRACE_S", "3600")),
            dedup_enabled=_env_bool("QUOTASHIELD_DEDUP_ENABLED", True),
            dedup_ttl_s=float(os.getenv("QUOTASHIELD_DEDUP_TTL_S", "300")),
            dedup_grace_s=float(os.getenv("QUOTASHIELD_DEDUP_GRACE_S", "1")),
            cache_sweep_interval_s=float(
                os.getenv("QUOTASHIELD_CACHE_SWEEP_INTERVAL_S", "60")
            ),
            dedup_sweep_interval_s=float(
                os.getenv("QUOTASHIELD_DEDUP_SWEEP_INTERVAL_S", "30")
            ),
            rate_limit_sweep_interval_s=float(
                os.getenv("QUOTASHIELD_RATE_LIMIT_SWEEP_INTERVAL_S", "60")
            ),
            quota_sweep_interval_s=float(
                os.getenv("QUOTASHIELD_QUOTA_SWEEP_INTERVAL_S", "300")
            ),
            search_ttl_s=float(os.getenv("QUOTASHIELD_SEARCH_TTL_S", "21600")),
            video_details_ttl_s=float(os.getenv("QUOTASHIELD_VIDEO_DETAILS_TTL_S", "86400")),
            recommendations_ttl_s=float(
                os.getenv("QUOTASHIELD_RECOMMENDATIONS_TTL_S", "43200")
            ),
            host=os.getenv("QUOTASHIELD_HOST", "127.0.0.1"),
            port=int(os.getenv("QUOTASHIELD_PORT", "8000")),
            metrics_backend=os.getenv("QUOTASHIELD_METRICS_BACKEND", "none").strip().lower(),
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_s=self.backoff_base_s,
            jitter_s=self.backoff_jitter_s,
            max_delay_s=self.backoff_max_s,
        )

    def quota_policy(self) -> QuotaPolicy:
        return QuotaPolicy(
            budget_units=self.quota_budget_units,
            period_s=self.quota_period_s,
            period_offset_s=self.quota_period_offset_s,
            per_identity_budget_units=self.quota_per_identity_units,
        )

    def rate_limit_policies(self) -> dict[str, RateLimitPolicy]:
        """Named throttle presets: default, recommendations and videos."""
        return {
            "default": RateLimitPolicy(
                max_requests=self.rate_limit_max_requests,
                window_s=self.rate_limit_window_s,
            ),
            "recommendations": RateLimitPolicy(
                max_requests=self.recommendations_rate_limit_max_requests,
                window_s=self.recommendations_rate_limit_window_s,
            ),
            "videos": RateLimitPolicy(
                max_requests=self.videos_rate_limit_max_requests,
                window_s=self.videos_rate_limit_window_s,
            ),
        }

    def cache_policy(self) -> CachePolicy:
        return CachePolicy(
            stale_while_revalidate=self.cache_stale_while_revalidate,
            stale_grace_s=self.cache_stale_grace_s,
        )

    def coalescing_policy(self) -> CoalescingPolicy:
        return CoalescingPolicy(
            enabled=self.dedup_enabled,
            ttl_s=self.dedup_ttl_s,
            grace_s=self.dedup_grace_s,
        )

    def feature_ttls(self) -> FeatureTTLs:
        return FeatureTTLs(
            search_s=self.search_ttl_s,
            video_details_s=self.video_details_ttl_s,
            recommendations_s=self.recommendations_ttl_s,
        )
