"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider-agnostic types shared by the runtime, services and HTTP host.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from .errors import (
    QuotaExhaustedError,
    QuotaShieldError,
    RateLimitedError,
    TerminalUpstreamError,
    TransientUpstreamError,
)

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]

ErrorKind = Literal[
    "quota_exhausted",
    "rate_limited",
    "upstream_transient",
    "upstream_terminal",
    "invalid_request",
    "internal",
]


@dataclass(frozen=True, slots=True)
class UpstreamResult:
    """One page of results returned by the upstream search provider."""

    items: list[JSONObject] = field(default_factory=list)
    next_page_token: str | None = None
    cost_units: int = 0
    total_results: int | None = None


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Admission decision for one identity."""

    allowed: bool
    retry_after_s: int | None = None
    remaining: int = 0
    reset_at: float | None = None


@dataclass(frozen=True, slots=True)
class QuotaStatus:
    """Quota usage snapshot, global or for one identity."""

    units_used: int
    units_remaining: int
    reset_at: float
    budget_units: int
    identity: str | None = None


@dataclass(slots=True)
class OrchestratorResponse:
    """
    Structured result of one logical request.

    Every exit of the orchestrator produces one of these; no exception crosses
    that boundary.
    """

    data: list[JSONObject] | None = None
    from_cache: bool = False
    quota_used: bool = False
    next_page_token: str | None = None
    error: str | None = None
    message: str | None = None
    status: int = 200
    error_kind: ErrorKind | None = None
    stale: bool = False
    revalidation_failed: bool = False
    retry_after_s: int | None = None
    reset_at: float | None = None
    rate_limit_remaining: int | None = None

    @property
    def ok(self) -> bool:
        """Whether data is available (fresh or stale)."""
        return self.error is None

    def to_payload(self) -> JSONObject:
        """Render the response body handed to the UI layer."""
        if self.error_kind == "rate_limited":
            return {
                "error": self.error,
                "message": self.message,
                "retryAfter": self.retry_after_s,
                "status": self.status,
            }

        payload: JSONObject = {
            "data": self.data,
            "fromCache": self.from_cache,
            "quotaUsed": self.quota_used,
            "stale": self.stale,
        }
        if self.next_page_token is not None:
            payload["nextPageToken"] = self.next_page_token
        if self.revalidation_failed:
            payload["revalidationFailed"] = True
        if self.error is not None:
            payload["error"] = self.error
            payload["message"] = self.message
            payload["status"] = self.status
        if self.reset_at is not None:
            payload["resetAt"] = self.reset_at
        if self.retry_after_s is not None:
            payload["retryAfter"] = self.retry_after_s
        return payload

    def headers(self) -> dict[str, str]:
        """Response headers matching the payload (``Retry-After`` etc.)."""
        out: dict[str, str] = {}
        if self.retry_after_s is not None:
            out["Retry-After"] = str(self.retry_after_s)
        if self.rate_limit_remaining is not None:
            out["X-RateLimit-Remaining"] = str(self.rate_limit_remaining)
        return out

    def raise_for_error(self) -> None:
        """Raise the matching quotashield error for callers preferring exceptions."""
        if self.error is None:
            return
        message = self.message or self.error
        if self.error_kind == "quota_exhausted":
            raise QuotaExhaustedError(message, reset_at=self.reset_at or 0.0)
        if self.error_kind == "rate_limited":
            raise RateLimitedError(message, retry_after_s=self.retry_after_s or 0)
        if self.error_kind == "upstream_transient":
            raise TransientUpstreamError(message)
        if self.error_kind == "upstream_terminal":
            raise TerminalUpstreamError(message)
        raise QuotaShieldError(message)
