"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy for the request orchestration layer.
"""

from __future__ import annotations


class QuotaShieldError(Exception):
    """Base error for quotashield."""


class ConfigurationError(QuotaShieldError, ValueError):
    """Raised when settings or policies are invalid."""


class UpstreamError(QuotaShieldError):
    """Base class for failures reported by the upstream provider."""

    retryable: bool = False
    status: int = 502


class TransientUpstreamError(UpstreamError):
    """Network/timeout/server-side failure; safe to retry with backoff."""

    retryable = True


class TerminalUpstreamError(UpstreamError):
    """Malformed request, auth failure or other non-retryable upstream failure."""

    retryable = False


class UpstreamHTTPError(UpstreamError):
    """HTTP status failure from upstream, classified by status code."""

    def __init__(self, status: int, message: str = "", *, reason: str | None = None) -> None:
        super().__init__(message or f"Upstream responded with HTTP {status}")
        self.status = status
        self.reason = reason

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status in (408, 429) or self.status >= 500


class QuotaExhaustedError(QuotaShieldError):
    """Local quota budget is spent for the current period."""

    def __init__(self, message: str, *, reset_at: float) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class RateLimitedError(QuotaShieldError):
    """Local admission control rejected the call."""

    def __init__(self, message: str, *, retry_after_s: int) -> None:
        super().__init__(message)
        self.retry_after_s = retry_after_s
