"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/base.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """One cached response row with expiration metadata; replaced, never mutated."""

    value: T
    stored_at: float
    expires_at: float
    revalidation_failed: bool = False


@dataclass(frozen=True, slots=True)
class CacheLookup(Generic[T]):
    """Read result: the value plus whether it is past its expiry."""

    value: T
    is_stale: bool
    stored_at: float
    expires_at: float
    revalidation_failed: bool = False


class ResponseCacheBackend(Protocol):
    """Protocol implemented by cache backends used by the orchestrator."""

    backend_id: str

    async def get(self, key: str) -> CacheLookup | None: ...

    async def get_stale(self, key: str) -> CacheLookup | None: ...

    async def set(self, key: str, value: object, *, ttl_s: float) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def mark_revalidation_failed(self, key: str) -> None: ...

    async def clear(self, pattern: str | None = None) -> int: ...

    def stats(self) -> dict[str, int]: ...

    async def shutdown(self) -> None: ...
