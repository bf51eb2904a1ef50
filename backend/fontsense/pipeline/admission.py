"""Admission control: a store-backed global semaphore for inference calls.

The counter lives in the document store so independent workers share one
budget. Acquisition fails closed: if the store cannot be read, no slot is
granted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import Callable, TypeVar

from fontsense.config import get_settings
from fontsense.models.facts import utcnow
from fontsense.models.ingest import RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY, RateLimitState
from fontsense.store.base import Document, DocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

WAIT_BASE_MS = 1000
WAIT_CAP_MS = 5000
WAIT_MAX_ATTEMPTS = 10


class AdmissionController:
    def __init__(
        self,
        store: DocumentStore,
        *,
        limit: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self._limit = limit
        self._sleep = sleep
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit if self._limit is not None else get_settings().max_concurrent_ops

    async def active_count(self) -> int:
        doc = await self.store.get(RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY)
        return RateLimitState.model_validate(doc).active_count if doc else 0

    async def try_acquire(self) -> bool:
        """Take a slot if one is free. Never blocks; False on any store error."""
        limit = self.limit

        def take(doc: Document | None) -> tuple[Document | None, bool]:
            current = max(0, int((doc or {}).get("active_count", 0)))
            if current >= limit:
                return None, False
            state = RateLimitState(active_count=current + 1, last_updated=utcnow())
            return state.model_dump(mode="json"), True

        try:
            acquired = await self.store.transaction(RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY, take)
        except Exception as e:
            logger.error("Error acquiring inference slot (fail-closed): %s", e)
            return False
        if acquired:
            logger.debug("Acquired inference slot (limit %d)", limit)
        else:
            logger.info("Inference slot limit reached (%d active)", limit)
        return acquired

    async def release(self) -> None:
        """Give a slot back. Failures are logged, never raised."""

        def give(doc: Document | None) -> tuple[Document | None, int]:
            current = int((doc or {}).get("active_count", 0))
            remaining = max(0, current - 1)
            state = RateLimitState(active_count=remaining, last_updated=utcnow())
            return state.model_dump(mode="json"), remaining

        try:
            remaining = await self.store.transaction(RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY, give)
            logger.debug("Released inference slot (%d active)", remaining)
            return
        except Exception as e:
            logger.error("Error releasing inference slot, trying blind decrement: %s", e)
        try:
            await self.store.increment(RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY, "active_count", -1, floor=0)
        except Exception as e:
            logger.error("Blind decrement of inference slot counter failed: %s", e)

    async def wait_acquire(self, max_wait_ms: int | None = None) -> bool:
        """Poll ``try_acquire`` with capped exponential backoff until the wall-clock ceiling."""
        if max_wait_ms is None:
            max_wait_ms = get_settings().admission_max_wait_ms
        start = self._clock()
        for attempt in range(WAIT_MAX_ATTEMPTS):
            if await self.try_acquire():
                return True
            remaining_ms = max_wait_ms - (self._clock() - start) * 1000
            if attempt == WAIT_MAX_ATTEMPTS - 1 or remaining_ms <= 0:
                break
            delay_ms = min(WAIT_CAP_MS, WAIT_BASE_MS * 2 ** attempt, remaining_ms)
            await self._sleep(delay_ms / 1000.0)
        logger.warning(
            "Timed out waiting for inference slot after %dms (%d attempts)",
            (self._clock() - start) * 1000, attempt + 1,
        )
        return False

    @asynccontextmanager
    async def slot(self, name: str = "inference", max_wait_ms: int | None = None) -> AsyncIterator[bool]:
        """Scoped acquisition: yields whether a slot was granted and always releases it."""
        acquired = await self.wait_acquire(max_wait_ms)
        if not acquired:
            logger.warning("No inference slot for %s, skipping", name)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release()

    async def run_gated(
        self,
        name: str,
        operation: Callable[[], Awaitable[T]],
        max_wait_ms: int | None = None,
    ) -> T | None:
        """Run ``operation`` under a slot; returns None when no slot could be had."""
        async with self.slot(name, max_wait_ms) as acquired:
            if not acquired:
                return None
            return await operation()
