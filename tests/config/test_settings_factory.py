from __future__ import annotations

import asyncio
import json

import pytest
from prometheus_client import CollectorRegistry

from quotashield.__main__ import main, parse_args
from quotashield.errors import ConfigurationError
from quotashield.factory import create_metrics, create_runtime
from quotashield.observability import (
    InMemoryOrchestratorMetrics,
    NoOpOrchestratorMetrics,
    PrometheusOrchestratorMetrics,
)
from quotashield.providers import YouTubeSearchProvider
from quotashield.settings import FeatureTTLs, QuotaShieldSettings
from quotashield.types import UpstreamResult


def run_async(coro):
    return asyncio.run(coro)


class _FakeProvider:
    provider_id = "fake"

    def cost_of(self, operation: str) -> int:
        return 100

    async def query(self, operation, params):
        return UpstreamResult(items=[{"id": "x"}], cost_units=100)


def test_defaults():
    settings = QuotaShieldSettings()
    assert settings.retry_policy().max_retries == 3
    assert settings.retry_policy().base_delay_s == 1.0
    assert settings.quota_policy().budget_units == 10_000
    assert settings.quota_policy().per_identity_budget_units == 1500
    assert settings.feature_ttls() == FeatureTTLs(
        search_s=21_600.0, video_details_s=86_400.0, recommendations_s=43_200.0
    )
    policies = settings.rate_limit_policies()
    assert (policies["recommendations"].max_requests, policies["recommendations"].window_s) == (5, 60.0)
    assert (policies["videos"].max_requests, policies["videos"].window_s) == (10, 30.0)
    assert settings.cache_policy().stale_while_revalidate is False


def test_from_env(monkeypatch):
    monkeypatch.setenv("QUOTASHIELD_YOUTUBE_API_KEY", "key-1")
    monkeypatch.setenv("QUOTASHIELD_MAX_RETRIES", "5")
    monkeypatch.setenv("QUOTASHIELD_QUOTA_BUDGET_UNITS", "9000")
    monkeypatch.setenv("QUOTASHIELD_QUOTA_PER_IDENTITY_UNITS", "3000")
    monkeypatch.setenv("QUOTASHIELD_CACHE_SWR", "yes")
    monkeypatch.setenv("QUOTASHIELD_VIDEOS_RATE_LIMIT_MAX_REQUESTS", "3")
    monkeypatch.setenv("QUOTASHIELD_SEARCH_TTL_S", "60")
    monkeypatch.setenv("QUOTASHIELD_METRICS_BACKEND", " Prometheus ")

    settings = QuotaShieldSettings.from_env()

    assert settings.youtube_api_key == "key-1"
    assert settings.max_retries == 5
    assert settings.quota_policy().budget_units == 9000
    assert settings.quota_policy().per_identity_budget_units == 3000
    assert settings.cache_stale_while_revalidate is True
    assert settings.rate_limit_policies()["videos"].max_requests == 3
    assert settings.feature_ttls().search_s == 60.0
    assert settings.metrics_backend == "prometheus"


def test_per_identity_cap_can_be_disabled_from_env(monkeypatch):
    monkeypatch.setenv("QUOTASHIELD_QUOTA_PER_IDENTITY_UNITS", "off")
    assert QuotaShieldSettings.from_env().quota_policy().per_identity_budget_units is None

    monkeypatch.delenv("QUOTASHIELD_QUOTA_PER_IDENTITY_UNITS")
    assert QuotaShieldSettings.from_env().quota_per_identity_units == 1500


def test_invalid_coalescing_values_are_rejected():
    with pytest.raises(ConfigurationError):
        QuotaShieldSettings(dedup_grace_s=-1).coalescing_policy()
    with pytest.raises(ConfigurationError):
        create_runtime(QuotaShieldSettings(dedup_ttl_s=0), provider=_FakeProvider())


def test_invalid_boolean_env_is_rejected(monkeypatch):
    monkeypatch.setenv("QUOTASHIELD_CACHE_SWR", "maybe")
    with pytest.raises(ConfigurationError):
        QuotaShieldSettings.from_env()


def test_invalid_policy_values_are_rejected():
    with pytest.raises(ConfigurationError):
        QuotaShieldSettings(max_retries=-1).retry_policy()


def test_create_metrics_backends():
    assert isinstance(create_metrics("none"), NoOpOrchestratorMetrics)
    assert isinstance(create_metrics("inmemory"), InMemoryOrchestratorMetrics)
    with pytest.raises(ConfigurationError):
        create_metrics("statsd")


def test_prometheus_metrics_count_with_labels():
    registry = CollectorRegistry()
    metrics = PrometheusOrchestratorMetrics(registry=registry)
    metrics.incr("requests_total", tags={"outcome": "fetched"})
    metrics.incr("requests_total", tags={"outcome": "fetched"})
    metrics.incr("quota_units_charged_total", 100)

    assert registry.get_sample_value(
        "quotashield_requests_total", {"outcome": "fetched"}
    ) == 2.0
    assert registry.get_sample_value("quotashield_quota_units_charged_total") == 100.0


def test_prometheus_sinks_share_one_registry():
    registry = CollectorRegistry()
    first = PrometheusOrchestratorMetrics(registry=registry)
    second = PrometheusOrchestratorMetrics(registry=registry)

    first.incr("requests_total", tags={"outcome": "fetched"})
    second.incr("requests_total", tags={"outcome": "fetched"})

    assert registry.get_sample_value(
        "quotashield_requests_total", {"outcome": "fetched"}
    ) == 2.0


def test_runtime_requires_api_key_without_provider():
    with pytest.raises(ConfigurationError):
        create_runtime(QuotaShieldSettings(youtube_api_key=None))


def test_runtime_builds_youtube_provider_from_settings():
    runtime = create_runtime(QuotaShieldSettings(youtube_api_key="k"))
    assert isinstance(runtime.orchestrator.provider, YouTubeSearchProvider)


def test_runtime_wires_services_and_shuts_down():
    async def scenario() -> None:
        metrics = InMemoryOrchestratorMetrics()
        runtime = create_runtime(QuotaShieldSettings(), provider=_FakeProvider(), metrics=metrics)
        response = await runtime.videos.search_videos("cats", "u1")
        assert response.ok
        assert runtime.stats()["quota"]["total_units_used"] == 100
        assert metrics.total("requests_total") == 1
        await runtime.shutdown()

    run_async(scenario())


def test_cli_parses_serve_options():
    args = parse_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
    assert (args.command, args.host, args.port) == ("serve", "0.0.0.0", 9000)


def test_cli_prints_redacted_settings(monkeypatch, capsys):
    monkeypatch.setenv("QUOTASHIELD_YOUTUBE_API_KEY", "top-secret")
    main(["settings"])
    rendered = json.loads(capsys.readouterr().out)
    assert rendered["youtube_api_key"] == "***"
    assert rendered["quota_budget_units"] == 10_000
