"""Exponential back-off for network-facing pipeline steps."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .exceptions import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryState:
    """Progress of a single retried call."""

    attempt: int = 0
    last_error: BaseException | None = None
    next_delay: float | None = None


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay scheduled after the failed attempt with zero-based index *attempt*."""
    return base_delay * (2**attempt)


async def retry_with_backoff(
    action: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    pre_delay: float = 0.0,
    description: str = "operation",
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``action()`` until it succeeds or attempts are exhausted.

    ``max_retries`` is the total number of attempts; values below 1 behave
    as a single attempt. The last failure is re-raised unchanged, and errors
    for which ``should_retry`` is false are re-raised without delay.
    """
    attempts = max(1, max_retries)
    state = RetryState()

    if pre_delay > 0:
        logger.debug("Waiting %.1fs before first %s attempt", pre_delay, description)
        await sleep(pre_delay)

    while True:
        try:
            return await action()
        except Exception as exc:
            state.last_error = exc
            final = state.attempt + 1 >= attempts
            if final or not should_retry(exc):
                if not final:
                    logger.debug("%s failed with non-retryable %s", description, type(exc).__name__)
                raise

            state.next_delay = backoff_delay(base_delay, state.attempt)
            logger.warning(
                "%s attempt %d/%d failed: %s; retrying in %.1fs",
                description,
                state.attempt + 1,
                attempts,
                exc,
                state.next_delay,
            )
            await sleep(state.next_delay)
            state.attempt += 1
