"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request pipeline composing quota, cache, coalescing, throttling and retry.

State flow per logical request::

    QUOTA_CHECK -> CACHE_CHECK -> (HIT: respond)
                                | (MISS: DEDUP_GATE -> THROTTLE_CHECK -> FETCH)
    FETCH -> (SUCCESS: cache update + quota charge -> RESPOND)
           | (FAILURE: STALE_FALLBACK or ERROR_RESPONSE)

All service state lives on one event loop; checks and map mutations run
between suspension points and need no locks.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from ..cache.base import CacheLookup, ResponseCacheBackend
from ..errors import ConfigurationError
from ..observability import NoOpOrchestratorMetrics, OrchestratorMetrics
from ..providers.contracts import SearchProvider
from ..types import (
    JSONValue,
    OrchestratorResponse,
    QuotaStatus,
    RateLimitDecision,
    UpstreamResult,
)
from ..utils import short_key
from .coalescing import RequestCoalescer
from .contracts import CoalescingPolicy, RetryPolicy
from .keys import generate_key, normalize_identity
from .quota import QuotaManager
from .rate_limit import FixedWindowRateLimiter
from .retry import Ok, Outcome, Retryable, call_with_retry

logger = logging.getLogger("quotashield.runtime.orchestrator")

DEFAULT_THROTTLE = "default"


@dataclass(frozen=True, slots=True)
class OrchestratedRequest:
    """
    One logical request issued by a feature.

    `cache_ttl_s` is supplied by each call site; features cache for different
    durations. `cost_units` defaults to the provider's cost for `operation`.
    """

    operation: str
    params: Mapping[str, JSONValue]
    identity: str | None
    cache_ttl_s: float
    cost_units: int | None = None
    method: str = "GET"
    resource: str | None = None
    throttle: str = DEFAULT_THROTTLE

    def __post_init__(self) -> None:
        if self.cache_ttl_s <= 0:
            raise ConfigurationError("cache_ttl_s must be > 0")
        if self.cost_units is not None and self.cost_units < 0:
            raise ConfigurationError("cost_units must be >= 0")


@dataclass(frozen=True, slots=True)
class _PipelineResult:
    """Settlement shared by every coalesced caller; `outcome` is None when throttled."""

    decision: RateLimitDecision
    outcome: Outcome[UpstreamResult] | None = None


class RequestOrchestrator:
    """Single entrypoint every feature-level upstream request goes through."""

    def __init__(
        self,
        provider: SearchProvider,
        *,
        cache: ResponseCacheBackend,
        quota: QuotaManager,
        coalescer: RequestCoalescer | None = None,
        rate_limiters: Mapping[str, FixedWindowRateLimiter] | None = None,
        retry_policy: RetryPolicy | None = None,
        coalescing_policy: CoalescingPolicy | None = None,
        metrics: OrchestratorMetrics | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._quota = quota
        self._coalescing_policy = coalescing_policy or CoalescingPolicy()
        self._coalescer = coalescer or RequestCoalescer(
            grace_s=self._coalescing_policy.grace_s,
            default_ttl_s=self._coalescing_policy.ttl_s,
        )
        self._rate_limiters = dict(rate_limiters or {})
        if DEFAULT_THROTTLE not in self._rate_limiters:
            self._rate_limiters[DEFAULT_THROTTLE] = FixedWindowRateLimiter(name=DEFAULT_THROTTLE)
        self._retry_policy = retry_policy or RetryPolicy()
        self._metrics: OrchestratorMetrics = metrics or NoOpOrchestratorMetrics()
        self._sleep = sleep
        self._revalidating: dict[str, asyncio.Task[None]] = {}

    @property
    def provider(self) -> SearchProvider:
        return self._provider

    @property
    def quota(self) -> QuotaManager:
        return self._quota

    @property
    def cache(self) -> ResponseCacheBackend:
        return self._cache

    def _incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        try:
            self._metrics.incr(name, value, tags=tags)
        except Exception:  # noqa: BLE001
            logger.exception("Metrics sink failed (metric=%s)", name)

    def rate_limiter(self, name: str) -> FixedWindowRateLimiter:
        """Limiter registered as `name`, falling back to the default limiter."""
        return self._rate_limiters.get(name) or self._rate_limiters[DEFAULT_THROTTLE]

    def request_key(self, request: OrchestratedRequest) -> str:
        resource = request.resource or f"{self._provider.provider_id}/{request.operation}"
        return generate_key(
            request.method,
            resource,
            dict(request.params),
            normalize_identity(request.identity),
        )

    async def execute(self, request: OrchestratedRequest) -> OrchestratorResponse:
        """
        Run one logical request through the pipeline.

        Never raises for upstream or local failures: every exit is an
        ``OrchestratorResponse``.
        """
        try:
            response = await self._execute(request)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Orchestrator failed unexpectedly (operation=%s)", request.operation
            )
            response = OrchestratorResponse(
                error="Internal error",
                message="The request could not be completed. Please try again.",
                status=500,
                error_kind="internal",
            )
        self._incr("requests_total", tags={"outcome": _outcome_label(response)})
        return response

    async def _execute(self, request: OrchestratedRequest) -> OrchestratorResponse:
        identity = normalize_identity(request.identity)
        cost = (
            request.cost_units
            if request.cost_units is not None
            else self._provider.cost_of(request.operation)
        )
        key = self.request_key(request)

        status = self._quota.get_status(identity)
        if status.units_remaining < cost:
            logger.warning(
                "Quota exhausted (identity=%s, remaining=%d, cost=%d)",
                identity,
                status.units_remaining,
                cost,
            )
            return self._quota_exhausted(status)

        lookup = await self._cache.get(key)
        if lookup is not None:
            if lookup.is_stale:
                self._incr("cache_hits_total", tags={"state": "stale"})
                self._schedule_revalidation(key, request, identity, cost)
            else:
                self._incr("cache_hits_total", tags={"state": "fresh"})
            return _from_cache(lookup)
        self._incr("cache_hits_total", tags={"state": "miss"})

        result = await self._dedup(key, request, identity, cost)
        return await self._respond(key, result)

    async def _dedup(
        self,
        key: str,
        request: OrchestratedRequest,
        identity: str,
        cost: int,
    ) -> _PipelineResult:
        def factory() -> Awaitable[_PipelineResult]:
            return self._pipeline(key, request, identity, cost)

        if not self._coalescing_policy.enabled:
            return await factory()
        return await self._coalescer.deduplicate(
            key, factory, ttl_s=self._coalescing_policy.ttl_s
        )

    async def _pipeline(
        self,
        key: str,
        request: OrchestratedRequest,
        identity: str,
        cost: int,
    ) -> _PipelineResult:
        limiter = self.rate_limiter(request.throttle)
        decision = limiter.check_and_increment(identity)
        if not decision.allowed:
            self._incr("throttled_total", tags={"throttle": limiter.name})
            return _PipelineResult(decision=decision)

        outcome = await call_with_retry(
            lambda: self._provider.query(request.operation, request.params),
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        if isinstance(outcome, Ok):
            result = outcome.value
            await self._cache.set(key, result, ttl_s=request.cache_ttl_s)
            charged = result.cost_units or cost
            self._quota.charge(charged, identity)
            self._incr("upstream_calls_total", tags={"result": "ok"})
            self._incr("quota_units_charged_total", charged)
        else:
            label = "retryable" if isinstance(outcome, Retryable) else "terminal"
            self._incr("upstream_calls_total", tags={"result": label})
            logger.warning(
                "Upstream %s failed after %d attempt(s) (key=%s): %s",
                request.operation,
                outcome.attempts,
                short_key(key),
                outcome.error,
            )
        return _PipelineResult(decision=decision, outcome=outcome)

    async def _respond(self, key: str, result: _PipelineResult) -> OrchestratorResponse:
        decision = result.decision
        outcome = result.outcome
        if outcome is None:
            return _rate_limited(decision)

        if isinstance(outcome, Ok):
            value = outcome.value
            return OrchestratorResponse(
                data=copy.deepcopy(list(value.items)),
                from_cache=False,
                quota_used=True,
                next_page_token=value.next_page_token,
                rate_limit_remaining=decision.remaining,
            )

        stale = await self._cache.get_stale(key)
        if stale is not None:
            await self._cache.mark_revalidation_failed(key)
            logger.info("Serving stale response after upstream failure (key=%s)", short_key(key))
            response = _from_cache(stale)
            response.revalidation_failed = True
            return response

        error = outcome.error
        transient = isinstance(outcome, Retryable)
        return OrchestratorResponse(
            error="Upstream request failed",
            message=str(error) or "The video service is unavailable. Please try again later.",
            status=502 if transient or error.status < 400 else error.status,
            error_kind="upstream_transient" if transient else "upstream_terminal",
        )

    def _schedule_revalidation(
        self,
        key: str,
        request: OrchestratedRequest,
        identity: str,
        cost: int,
    ) -> None:
        if key in self._revalidating:
            return
        task = asyncio.get_running_loop().create_task(
            self._revalidate(key, request, identity, cost)
        )
        self._revalidating[key] = task
        task.add_done_callback(lambda _: self._revalidating.pop(key, None))

    async def _revalidate(
        self,
        key: str,
        request: OrchestratedRequest,
        identity: str,
        cost: int,
    ) -> None:
        try:
            result = await self._dedup(key, request, identity, cost)
        except Exception:  # noqa: BLE001
            logger.exception("Background revalidation crashed (key=%s)", short_key(key))
            result = None

        if result is not None and isinstance(result.outcome, Ok):
            self._incr("revalidations_total", tags={"result": "ok"})
            return
        self._incr("revalidations_total", tags={"result": "failed"})
        await self._cache.mark_revalidation_failed(key)

    async def wait_for_revalidations(self) -> None:
        """Wait until every scheduled background revalidation has settled."""
        while self._revalidating:
            await asyncio.gather(*list(self._revalidating.values()), return_exceptions=True)

    def _quota_exhausted(self, status: QuotaStatus) -> OrchestratorResponse:
        reset_iso = datetime.fromtimestamp(status.reset_at, tz=timezone.utc).isoformat()
        return OrchestratorResponse(
            error="Quota exhausted",
            message=f"Daily video search quota reached. Please try again later (resets at {reset_iso}).",
            status=503,
            error_kind="quota_exhausted",
            reset_at=status.reset_at,
            retry_after_s=self._quota.seconds_until_reset(),
        )

    def stats(self) -> dict[str, object]:
        return {
            "cache": self._cache.stats(),
            "coalescer": self._coalescer.stats(),
            "quota": self._quota.stats(),
            "rate_limiters": {
                name: limiter.stats() for name, limiter in self._rate_limiters.items()
            },
            "revalidating": len(self._revalidating),
        }

    async def shutdown(self) -> None:
        """Cancel pending revalidations and stop every service's sweeper."""
        pending = list(self._revalidating.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._revalidating.clear()

        await self._coalescer.shutdown()
        await self._cache.shutdown()
        await self._quota.shutdown()
        for limiter in self._rate_limiters.values():
            await limiter.shutdown()
        logger.info("Orchestrator shut down")


def _from_cache(lookup: CacheLookup) -> OrchestratorResponse:
    value: UpstreamResult = lookup.value
    return OrchestratorResponse(
        data=copy.deepcopy(list(value.items)),
        from_cache=True,
        quota_used=False,
        next_page_token=value.next_page_token,
        stale=lookup.is_stale,
        revalidation_failed=lookup.revalidation_failed,
    )


def _rate_limited(decision: RateLimitDecision) -> OrchestratorResponse:
    retry_after = decision.retry_after_s or 1
    return OrchestratorResponse(
        error="Rate limit exceeded",
        message=f"Too many requests. Please wait {retry_after} seconds before trying again.",
        status=429,
        error_kind="rate_limited",
        retry_after_s=retry_after,
        rate_limit_remaining=0,
    )


def _outcome_label(response: OrchestratorResponse) -> str:
    if response.error_kind is not None:
        return response.error_kind
    if response.stale:
        return "stale"
    return "cache_hit" if response.from_cache else "fetched"
