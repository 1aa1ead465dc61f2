"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers wiring the orchestration runtime from settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .cache import ResponseCacheBackend, create_response_cache
from .errors import ConfigurationError
from .observability import (
    InMemoryOrchestratorMetrics,
    NoOpOrchestratorMetrics,
    OrchestratorMetrics,
    PrometheusOrchestratorMetrics,
)
from .providers import SearchProvider, YouTubeSearchProvider
from .runtime.coalescing import RequestCoalescer
from .runtime.orchestrator import RequestOrchestrator
from .runtime.quota import QuotaManager
from .runtime.rate_limit import FixedWindowRateLimiter
from .services.videos import VideoSearchService
from .settings import QuotaShieldSettings

logger = logging.getLogger("quotashield.factory")


@dataclass(slots=True)
class QuotaShieldRuntime:
    """Every service owned by one process, shut down together."""

    settings: QuotaShieldSettings
    orchestrator: RequestOrchestrator
    videos: VideoSearchService
    metrics: OrchestratorMetrics

    def stats(self) -> dict[str, object]:
        return self.orchestrator.stats()

    async def shutdown(self) -> None:
        await self.orchestrator.shutdown()


def create_metrics(backend: str) -> OrchestratorMetrics:
    """
    Create a metrics sink by name.

    Backends:
    - `none` (default)
    - `inmemory`
    - `prometheus`
    """
    key = (backend or "none").strip().lower()
    if key in ("", "none", "noop", "off"):
        return NoOpOrchestratorMetrics()
    if key in ("mem", "memory", "inmemory", "in_memory"):
        return InMemoryOrchestratorMetrics()
    if key == "prometheus":
        return PrometheusOrchestratorMetrics()
    raise ConfigurationError(f"Unknown QUOTASHIELD_METRICS_BACKEND: {backend}")


def create_runtime(
    settings: QuotaShieldSettings | None = None,
    *,
    provider: SearchProvider | None = None,
    metrics: OrchestratorMetrics | None = None,
    cache: ResponseCacheBackend | None = None,
) -> QuotaShieldRuntime:
    """
    Build the orchestrator and feature services.

    Settings default to `QUOTASHIELD_*` environment variables. Without an
    explicit `provider`, a YouTube provider is built and requires an API key.
    """
    settings = settings or QuotaShieldSettings.from_env()
    if provider is None:
        provider = YouTubeSearchProvider(
            settings.youtube_api_key or "",
            base_url=settings.youtube_base_url,
            timeout_s=settings.youtube_timeout_s,
            region_code=settings.youtube_region_code,
        )
    metrics = metrics or create_metrics(settings.metrics_backend)

    response_cache = create_response_cache(
        cache or settings.cache_backend,
        policy=settings.cache_policy(),
        sweep_interval_s=settings.cache_sweep_interval_s,
    )
    coalescing = settings.coalescing_policy()
    orchestrator = RequestOrchestrator(
        provider,
        cache=response_cache,
        quota=QuotaManager(
            settings.quota_policy(),
            sweep_interval_s=settings.quota_sweep_interval_s,
        ),
        coalescer=RequestCoalescer(
            grace_s=coalescing.grace_s,
            default_ttl_s=coalescing.ttl_s,
            sweep_interval_s=settings.dedup_sweep_interval_s,
        ),
        rate_limiters={
            name: FixedWindowRateLimiter(
                policy,
                name=name,
                sweep_interval_s=settings.rate_limit_sweep_interval_s,
            )
            for name, policy in settings.rate_limit_policies().items()
        },
        retry_policy=settings.retry_policy(),
        coalescing_policy=coalescing,
        metrics=metrics,
    )
    logger.info(
        "Runtime created (provider=%s, cache=%s, swr=%s)",
        provider.provider_id,
        getattr(response_cache, "backend_id", type(response_cache).__name__),
        settings.cache_stale_while_revalidate,
    )
    return QuotaShieldRuntime(
        settings=settings,
        orchestrator=orchestrator,
        videos=VideoSearchService(orchestrator, settings.feature_ttls()),
        metrics=metrics,
    )
