"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: __init__.py.
"""

from .errors import (
    ConfigurationError,
    QuotaExhaustedError,
    QuotaShieldError,
    RateLimitedError,
    TerminalUpstreamError,
    TransientUpstreamError,
    UpstreamError,
    UpstreamHTTPError,
)
from .factory import QuotaShieldRuntime, create_runtime
from .runtime import OrchestratedRequest, RequestOrchestrator
from .settings import FeatureTTLs, QuotaShieldSettings
from .types import OrchestratorResponse, QuotaStatus, UpstreamResult

__version__ = "0.1.0"

__all__ = [
    "create_runtime",
    "QuotaShieldRuntime",
    "QuotaShieldSettings",
    "FeatureTTLs",
    "RequestOrchestrator",
    "OrchestratedRequest",
    "OrchestratorResponse",
    "UpstreamResult",
    "QuotaStatus",
    "QuotaShieldError",
    "ConfigurationError",
    "UpstreamError",
    "TransientUpstreamError",
    "TerminalUpstreamError",
    "UpstreamHTTPError",
    "QuotaExhaustedError",
    "RateLimitedError",
]
