"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/registry.py.
"""

from __future__ import annotations

from collections.abc import Callable

from ..errors import ConfigurationError
from ..runtime.contracts import CachePolicy
from .base import ResponseCacheBackend
from .inmemory import InMemoryResponseCache

CacheFactory = Callable[[CachePolicy, float], ResponseCacheBackend]

_REGISTRY: dict[str, CacheFactory] = {
    "inmemory": lambda policy, sweep_interval_s: InMemoryResponseCache(
        policy, sweep_interval_s=sweep_interval_s
    ),
}


class CacheBackendError(ConfigurationError):
    """Raised when cache backend resolution fails."""


def register_cache_backend(
    backend_id: str,
    factory: CacheFactory,
    *,
    overwrite: bool = False,
) -> None:
    """Register one cache backend factory by id."""
    key = backend_id.strip().lower()
    if not key:
        raise CacheBackendError("Cache backend id must be non-empty")
    if key in _REGISTRY and not overwrite:
        raise CacheBackendError(f"Cache backend already registered: {key}")
    _REGISTRY[key] = factory


def create_response_cache(
    backend: str | ResponseCacheBackend | None = None,
    *,
    policy: CachePolicy | None = None,
    sweep_interval_s: float = 60.0,
) -> ResponseCacheBackend:
    """Resolve a cache backend from id/instance/default; each call builds a new one."""
    if backend is not None and not isinstance(backend, str):
        return backend

    key = (backend or "inmemory").strip().lower()
    factory = _REGISTRY.get(key)
    if factory is None:
        raise CacheBackendError(f"Unknown cache backend '{backend}'")
    return factory(policy or CachePolicy(), sweep_interval_s)


def list_cache_backends() -> list[str]:
    """List registered cache backend ids."""
    return sorted(_REGISTRY.keys())
