"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/retry.py.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

from ..errors import TerminalUpstreamError, TransientUpstreamError, UpstreamError
from ..utils import backoff_delay
from .contracts import RetryPolicy

logger = logging.getLogger("quotashield.runtime.retry")

T = TypeVar("T")

_RETRY_PHRASES = (
    "rate limit",
    "timeout",
    "timed out",
    "temporarily",
    "overloaded",
    "service unavailable",
    "connection reset",
    "429",
    "502",
    "503",
    "504",
)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful attempt."""

    value: T
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class Retryable:
    """Failure that may succeed when tried again."""

    error: UpstreamError
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class Terminal:
    """Failure that will not succeed when tried again."""

    error: UpstreamError
    attempts: int = 1


Outcome: TypeAlias = Ok[T] | Retryable | Terminal


def classify_error(error: BaseException) -> Retryable | Terminal:
    """Classify exceptions into retryable/terminal upstream failures."""
    if isinstance(error, UpstreamError):
        classified: UpstreamError = error
    elif isinstance(error, (asyncio.TimeoutError, TimeoutError, socket.timeout)):
        classified = TransientUpstreamError(f"Upstream call timed out: {error}")
    elif isinstance(error, (ConnectionError, OSError)):
        classified = TransientUpstreamError(str(error) or type(error).__name__)
    elif isinstance(error, (ValueError, TypeError, KeyError)):
        classified = TerminalUpstreamError(str(error) or type(error).__name__)
    else:
        msg = str(error).lower()
        if any(token in msg for token in _RETRY_PHRASES):
            classified = TransientUpstreamError(str(error))
        else:
            classified = TerminalUpstreamError(str(error) or type(error).__name__)

    if classified is not error:
        classified.__cause__ = error
    if classified.retryable:
        return Retryable(error=classified)
    return Terminal(error=classified)


async def attempt(fn: Callable[[], Awaitable[T]]) -> Outcome[T]:
    """Run `fn` once and return a tagged outcome instead of raising."""
    try:
        return Ok(await fn())
    except Exception as error:
        return classify_error(error)


async def retry_outcome(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    base_delay_s: float,
    jitter_s: float = 0.0,
    max_delay_s: float | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Outcome[T]:
    """
    Execute `fn` under bounded exponential backoff.

    Retryable failures wait ``base_delay_s * 2**attempt`` before the next try;
    terminal failures return immediately. After ``max_retries`` retries the
    last retryable outcome is returned.
    """
    outcome: Outcome[T] = Terminal(error=TerminalUpstreamError("Retry loop never ran"))
    for index in range(max_retries + 1):
        result = await attempt(fn)
        tries = index + 1
        if isinstance(result, Ok):
            return Ok(result.value, attempts=tries)
        if isinstance(result, Terminal):
            return Terminal(result.error, attempts=tries)

        outcome = Retryable(result.error, attempts=tries)
        if index < max_retries:
            delay = backoff_delay(index, base_delay_s, jitter_s, max_delay_s)
            logger.info(
                "Upstream call failed, retrying in %.2fs (attempt %d/%d): %s",
                delay,
                tries,
                max_retries + 1,
                result.error,
            )
            await sleep(delay)
    return outcome


async def retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    base_delay_s: float,
    jitter_s: float = 0.0,
    max_delay_s: float | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Like ``retry_outcome`` but returns the value or raises the classified error."""
    outcome = await retry_outcome(
        fn,
        max_retries=max_retries,
        base_delay_s=base_delay_s,
        jitter_s=jitter_s,
        max_delay_s=max_delay_s,
        sleep=sleep,
    )
    if isinstance(outcome, Ok):
        return outcome.value
    raise outcome.error


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Outcome[T]:
    """Execute `fn` under a ``RetryPolicy``."""
    return await retry_outcome(
        fn,
        max_retries=policy.max_retries,
        base_delay_s=policy.base_delay_s,
        jitter_s=policy.jitter_s,
        max_delay_s=policy.max_delay_s,
        sleep=sleep,
    )
