"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: utils.py.
"""

from __future__ import annotations

import random


def backoff_delay(
    attempt: int,
    base_s: float,
    jitter_s: float = 0.0,
    max_s: float | None = None,
) -> float:
    """Exponential backoff delay for zero-based `attempt`: ``base_s * 2**attempt``."""
    delay = base_s * (2 ** max(0, attempt))
    if max_s is not None:
        delay = min(delay, max_s)
    if jitter_s > 0:
        delay += random.uniform(0.0, jitter_s)
    return max(0.0, delay)


def short_key(key: str) -> str:
    """Key prefix used in log lines."""
    return f"{key[:8]}..." if len(key) > 8 else key
