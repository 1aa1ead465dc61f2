"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/__init__.py.
"""

from .coalescing import RequestCoalescer
from .contracts import (
    CachePolicy,
    CoalescingPolicy,
    QuotaPolicy,
    RateLimitPolicy,
    RetryPolicy,
)
from .keys import ANONYMOUS_IDENTITY, generate_key, is_degenerate_key
from .orchestrator import OrchestratedRequest, RequestOrchestrator
from .quota import QuotaManager
from .rate_limit import FixedWindowRateLimiter
from .retry import Ok, Outcome, Retryable, Terminal, call_with_retry, classify_error, retry_outcome
from .sweeper import PeriodicSweeper

__all__ = [
    "RequestOrchestrator",
    "OrchestratedRequest",
    "RequestCoalescer",
    "FixedWindowRateLimiter",
    "QuotaManager",
    "PeriodicSweeper",
    "RetryPolicy",
    "RateLimitPolicy",
    "QuotaPolicy",
    "CachePolicy",
    "CoalescingPolicy",
    "Ok",
    "Retryable",
    "Terminal",
    "Outcome",
    "classify_error",
    "retry_outcome",
    "call_with_retry",
    "generate_key",
    "is_degenerate_key",
    "ANONYMOUS_IDENTITY",
]
