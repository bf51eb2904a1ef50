"""Retry engine shared by every external call site.

Delay before retry ``n`` (``n`` = failed attempt, 1-based) is
``min(max_ms, base_ms * 2**(n-1))`` scaled by a uniform jitter in [0.75, 1.25].
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, TypeVar

from fontsense.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_LOW = 0.75
JITTER_HIGH = 1.25

_SAFETY_REASONS = {"safety", "refusal", "blocked", "prohibited_content"}


@dataclass
class RetryOptions:
    max_attempts: int | None = None
    base_ms: int | None = None
    max_ms: int | None = None
    should_retry: Callable[[BaseException], bool] | None = None


def error_status(err: BaseException) -> int | None:
    """HTTP-style status of an error, if it carries one."""
    for attr in ("status", "status_code", "code"):
        value = getattr(err, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(err, "response", None)
    value = getattr(response, "status_code", None) or getattr(response, "status", None)
    return value if isinstance(value, int) else None


def is_safety_rejection(err: BaseException) -> bool:
    reason = getattr(err, "finish_reason", None)
    return reason is not None and str(reason).lower() in _SAFETY_REASONS


def default_should_retry(err: BaseException) -> bool:
    """Retry 429 and 5xx; never safety rejections, other 4xx, or status-less errors."""
    if is_safety_rejection(err):
        return False
    status = error_status(err)
    if status is None:
        return False
    return status == 429 or status >= 500


def backoff_ms(attempt: int, base_ms: int, max_ms: int) -> float:
    """Un-jittered delay after failed attempt ``attempt`` (1-based)."""
    return float(min(max_ms, base_ms * 2 ** (attempt - 1)))


async def with_retry(
    name: str,
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: random.Random | None = None,
) -> T:
    """Run ``operation`` until it succeeds, is not retryable, or attempts run out.

    The last error is re-raised unchanged.
    """
    options = options or RetryOptions()
    settings = get_settings()
    max_attempts = max(1, options.max_attempts if options.max_attempts is not None else settings.retry_max_attempts)
    base_ms = options.base_ms if options.base_ms is not None else settings.retry_base_ms
    max_ms = options.max_ms if options.max_ms is not None else settings.retry_max_ms
    should_retry = options.should_retry or default_should_retry
    rand = rng or random

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as err:
            if attempt >= max_attempts or not should_retry(err):
                if attempt > 1:
                    logger.warning("%s failed after %d attempt(s): %s", name, attempt, err)
                raise
            delay = backoff_ms(attempt, base_ms, max_ms) * rand.uniform(JITTER_LOW, JITTER_HIGH)
            logger.warning(
                "%s attempt %d failed (status=%s), retrying in %dms: %s",
                name, attempt, error_status(err), round(delay), err,
            )
            await sleep(delay / 1000.0)
            attempt += 1
