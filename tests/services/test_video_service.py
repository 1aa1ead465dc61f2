from __future__ import annotations

import asyncio

from quotashield.cache.inmemory import InMemoryResponseCache
from quotashield.runtime.contracts import CoalescingPolicy, QuotaPolicy, RateLimitPolicy
from quotashield.runtime.orchestrator import RequestOrchestrator
from quotashield.runtime.quota import QuotaManager
from quotashield.runtime.rate_limit import FixedWindowRateLimiter
from quotashield.services.videos import VideoSearchService, age_group
from quotashield.settings import FeatureTTLs
from quotashield.types import UpstreamResult


def run_async(coro):
    return asyncio.run(coro)


class _FakeProvider:
    provider_id = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def cost_of(self, operation: str) -> int:
        return 100 if operation == "search" else 1

    async def query(self, operation, params):
        self.calls.append((operation, dict(params)))
        return UpstreamResult(items=[{"id": f"r{len(self.calls)}"}], cost_units=self.cost_of(operation))


def _service(provider: _FakeProvider, *, recommendations_limit: int = 5, budget: int = 10_000):
    orchestrator = RequestOrchestrator(
        provider,
        cache=InMemoryResponseCache(),
        quota=QuotaManager(QuotaPolicy(budget_units=budget)),
        rate_limiters={
            "default": FixedWindowRateLimiter(),
            "videos": FixedWindowRateLimiter(RateLimitPolicy(max_requests=10, window_s=30), name="videos"),
            "recommendations": FixedWindowRateLimiter(
                RateLimitPolicy(max_requests=recommendations_limit, window_s=60),
                name="recommendations",
            ),
        },
        coalescing_policy=CoalescingPolicy(grace_s=0),
    )
    return VideoSearchService(orchestrator, FeatureTTLs()), orchestrator


def test_search_passes_filters_and_skips_any():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider)
        response = await service.search_videos(
            "  volcanoes ",
            "u1",
            max_results=5,
            page_token="TOKEN",
            filters={"duration": "medium", "sortBy": None, "uploadDate": "any"},
        )

        assert response.ok
        assert provider.calls == [
            ("search", {"q": "volcanoes", "maxResults": 5, "pageToken": "TOKEN", "duration": "medium"})
        ]
        await orchestrator.shutdown()

    run_async(scenario())


def test_empty_inputs_are_rejected_without_upstream_calls():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider)

        search = await service.search_videos("   ", "u1")
        details = await service.get_video_details(["", "  "], "u1")
        recommendations = await service.get_recommendations([], 7, "u1")

        for response in (search, details, recommendations):
            assert response.status == 400
            assert response.error_kind == "invalid_request"
        assert provider.calls == []
        await orchestrator.shutdown()

    run_async(scenario())


def test_video_details_ids_are_order_insensitive():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider)

        first = await service.get_video_details(["b", "a", "a"], "u1")
        second = await service.get_video_details(["a", "b"], "u1")

        assert provider.calls == [("videos", {"ids": ["a", "b"]})]
        assert second.from_cache is True
        assert first.data == second.data
        assert orchestrator.quota.get_status().units_used == 1
        await orchestrator.shutdown()

    run_async(scenario())


def test_recommendations_query_uses_interests_and_age_group():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider)
        await service.get_recommendations(["space", " robots "], 7, "u1")
        await service.get_recommendations(["space"], 10, "u1", category="science")

        assert provider.calls[0][1]["q"] == "space robots for kids elementary educational"
        assert provider.calls[0][1]["maxResults"] == 6
        assert provider.calls[1][1]["q"] == (
            "science experiment STEM physics chemistry biology for kids middle grade"
        )
        await orchestrator.shutdown()

    run_async(scenario())


def test_recommendations_have_their_own_throttle():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider, recommendations_limit=1)

        assert (await service.get_recommendations(["art"], 6, "u1")).ok
        throttled = await service.get_recommendations(["music"], 6, "u1")
        search = await service.search_videos("music", "u1")

        assert throttled.status == 429
        assert search.ok
        await orchestrator.shutdown()

    run_async(scenario())


def test_quota_status_summarizes_usage_with_tips():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider, budget=1000)
        await service.search_videos("cats", "u1")

        status = service.quota_status("u1")
        assert status["user"]["searchesUsed"] == 1
        assert status["user"]["searchesRemaining"] == 9
        assert status["user"]["unitsUsed"] == 100
        assert status["user"]["canMakeRequests"] is True
        assert status["global"]["totalUnitsUsed"] == 100
        assert status["global"]["activeUsers"] == 1
        assert status["global"]["dailyLimit"] == 1000
        assert status["tips"]["message"] == "You can make more video searches today!"
        assert "Search for educational videos" in status["tips"]["recommendedActions"]
        await orchestrator.shutdown()

    run_async(scenario())


def test_quota_status_when_budget_is_spent():
    async def scenario() -> None:
        provider = _FakeProvider()
        service, orchestrator = _service(provider, budget=100)
        await service.search_videos("cats", "u1")

        status = service.quota_status("u2")
        assert status["user"]["canMakeRequests"] is False
        assert status["user"]["searchesRemaining"] == 0
        assert "Daily search limit reached" in status["tips"]["message"]
        assert "Browse cached recommendations" in status["tips"]["recommendedActions"]
        await orchestrator.shutdown()

    run_async(scenario())


def test_age_groups():
    assert age_group(4) == "preschool"
    assert age_group(5) == "preschool"
    assert age_group(8) == "elementary"
    assert age_group(12) == "middle grade"
    assert age_group(13) == "teen"
