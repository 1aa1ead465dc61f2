"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for orchestrator observability.
"""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from typing import Protocol

# Collectors register once per registry; every sink on that registry reuses them.
_SHARED_COUNTERS: weakref.WeakKeyDictionary[object, dict[tuple, object]] = (
    weakref.WeakKeyDictionary()
)


class OrchestratorMetrics(Protocol):
    """Minimal metrics interface for orchestrator instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpOrchestratorMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class InMemoryOrchestratorMetrics:
    """Counter store keyed by ``name`` and sorted tag pairs."""

    def __init__(self) -> None:
        self.counters: dict[tuple[str, tuple[tuple[str, str], ...]], int] = {}

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        key = (name, tuple(sorted((tags or {}).items())))
        self.counters[key] = self.counters.get(key, 0) + value

    def total(self, name: str, **tags: str) -> int:
        """Sum counters named `name` whose tags include `tags`."""
        wanted = set(tags.items())
        return sum(
            value
            for (metric, labels), value in self.counters.items()
            if metric == name and wanted.issubset(labels)
        )


class PrometheusOrchestratorMetrics:
    """
    Prometheus-backed orchestrator metrics adapter.

    Requires `prometheus_client` package.
    """

    def __init__(self, *, namespace: str = "quotashield", registry=None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusOrchestratorMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        counters = _SHARED_COUNTERS.setdefault(self._registry, {})
        key = (self._namespace, name, label_names)
        counter = counters.get(key)
        if counter is None:
            counter = self._Counter(
                name=name,
                documentation=f"quotashield orchestrator metric {name}",
                namespace=self._namespace,
                labelnames=label_names,
                registry=self._registry,
            )
            counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
