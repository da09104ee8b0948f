"""
Resilience utilities: bounded retry with exponential backoff.
"""
import asyncio
from collections.abc import Awaitable, Callable, Collection
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float | None = None) -> float:
    """Delay to wait after failed attempt number ``attempt`` (counted from 1)."""
    delay = base_delay * (2 ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay: float,
    retryable_kinds: Collection[Any],
    max_delay: float | None = None,
    log: Any | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Awaits ``operation()`` up to ``max_attempts`` times.

    A failure is retried only when its ``kind`` attribute is in ``retryable_kinds`` and
    attempts remain; the wait before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``.
    Whatever the last attempt raised is propagated unchanged so callers can inspect
    the real cause. Exceptions without a ``kind`` are never retried.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1.")

    log = log or logger
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if getattr(e, "kind", None) not in retryable_kinds:
                raise
            if attempt >= max_attempts:
                log.error("Giving up after retryable failure.", attempts=attempt, error_type=type(e).__name__, error_message=str(e))
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            log.warning(f"Retryable failure. Retrying in {delay:.2f}s...", attempt=attempt, max_attempts=max_attempts, error_type=type(e).__name__, error_message=str(e))
            await sleep(delay)
            attempt += 1
