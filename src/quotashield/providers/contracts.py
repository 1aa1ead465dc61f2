"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Upstream provider contract consumed by the orchestrator.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from ..types import JSONValue, UpstreamResult


@runtime_checkable
class SearchProvider(Protocol):
    """
    Quota-limited search provider.

    ``query`` raises ``UpstreamError`` subclasses (or plain network/timeout
    exceptions) on failure; the retry executor classifies them.
    """

    provider_id: str

    def cost_of(self, operation: str) -> int:
        """Cost units charged by the provider for one `operation` call."""
        ...

    async def query(
        self, operation: str, params: Mapping[str, JSONValue]
    ) -> UpstreamResult:
        """Execute one upstream call."""
        ...
