from __future__ import annotations

from fastapi.testclient import TestClient

from quotashield.factory import create_runtime
from quotashield.server.app import QuotaShieldServiceHost
from quotashield.settings import QuotaShieldSettings
from quotashield.types import UpstreamResult

USER = {"X-User-Id": "parent-1"}


class _FakeProvider:
    provider_id = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def cost_of(self, operation: str) -> int:
        return 100 if operation == "search" else 1

    async def query(self, operation, params):
        self.calls.append((operation, dict(params)))
        return UpstreamResult(
            items=[{"id": f"r{len(self.calls)}"}],
            next_page_token="NEXT" if operation == "search" else None,
            cost_units=self.cost_of(operation),
        )


def _client(provider: _FakeProvider, **overrides) -> TestClient:
    settings = QuotaShieldSettings(dedup_grace_s=0, **overrides)
    runtime = create_runtime(settings, provider=provider)
    return TestClient(QuotaShieldServiceHost(runtime).create_app())


def test_requires_identity_header():
    with _client(_FakeProvider()) as client:
        response = client.get("/api/youtube/search", params={"q": "cats"})
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}
        assert client.get("/api/quota-status").status_code == 401


def test_search_then_cache_hit():
    provider = _FakeProvider()
    with _client(provider) as client:
        first = client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)
        second = client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)

        assert first.status_code == 200
        assert first.json() == {
            "data": [{"id": "r1"}],
            "fromCache": False,
            "quotaUsed": True,
            "stale": False,
            "nextPageToken": "NEXT",
        }
        assert first.headers["X-RateLimit-Remaining"] == "9"
        assert second.json()["fromCache"] is True
        assert second.json()["quotaUsed"] is False
        assert len(provider.calls) == 1
        assert provider.calls[0][1]["maxResults"] == 8


def test_search_throttle_returns_retry_after():
    with _client(_FakeProvider(), videos_rate_limit_max_requests=1) as client:
        client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)
        response = client.get("/api/youtube/search", params={"q": "dogs"}, headers=USER)

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Rate limit exceeded"
        assert body["retryAfter"] == 30
        assert response.headers["Retry-After"] == "30"


def test_empty_search_is_bad_request():
    with _client(_FakeProvider()) as client:
        response = client.get("/api/youtube/search", params={"q": " "}, headers=USER)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


def test_video_details_body():
    provider = _FakeProvider()
    with _client(provider) as client:
        response = client.post(
            "/api/youtube/videos", json={"videoIds": ["b", "a"]}, headers=USER
        )
        assert response.status_code == 200
        assert provider.calls == [("videos", {"ids": ["a", "b"]})]

        invalid = client.post("/api/youtube/videos", json={"videoIds": "a"}, headers=USER)
        assert invalid.status_code == 422


def test_recommendations_and_quota_status():
    provider = _FakeProvider()
    with _client(provider, quota_budget_units=1000) as client:
        response = client.get(
            "/api/recommendations",
            params={"interests": "space,robots", "age": 4, "maxResults": 3},
            headers=USER,
        )
        assert response.status_code == 200
        assert provider.calls[0][1]["q"] == "space robots for kids preschool educational"
        assert provider.calls[0][1]["maxResults"] == 3

        status = client.get("/api/quota-status", headers=USER).json()
        assert status["user"]["unitsUsed"] == 100
        assert status["global"]["totalUnitsRemaining"] == 900
        assert "tips" in status


def test_quota_exhausted_is_service_unavailable():
    with _client(_FakeProvider(), quota_budget_units=100) as client:
        client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)
        response = client.get("/api/youtube/search", params={"q": "dogs"}, headers=USER)

        assert response.status_code == 503
        assert response.json()["error"] == "Quota exhausted"
        assert int(response.headers["Retry-After"]) >= 1


def test_health_reports_stats():
    with _client(_FakeProvider()) as client:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["provider"] == "fake"
        assert set(body["stats"]["rate_limiters"]) == {"default", "recommendations", "videos"}


def test_app_survives_repeated_lifespans():
    provider = _FakeProvider()
    runtime = create_runtime(QuotaShieldSettings(dedup_grace_s=0), provider=provider)
    app = QuotaShieldServiceHost(runtime).create_app()

    with TestClient(app) as client:
        first = client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)
        assert first.json()["fromCache"] is False

    with TestClient(app) as client:
        cached = client.get("/api/youtube/search", params={"q": "cats"}, headers=USER)
        fresh = client.get("/api/youtube/search", params={"q": "dogs"}, headers=USER)
        assert cached.json()["fromCache"] is True
        assert fresh.status_code == 200
        assert runtime.orchestrator.quota._sweeper.is_running

    assert len(provider.calls) == 2
