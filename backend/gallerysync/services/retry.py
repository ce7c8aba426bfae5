"""Retry with exponential backoff for outbound disk API requests.

``RetryTransport`` wraps any httpx async transport:

    transport = RetryTransport(httpx.AsyncHTTPTransport())
    async with httpx.AsyncClient(transport=transport) as client:
        ...

Policy: at most ``max_attempts`` requests; HTTP 5xx, HTTP 429 and
transport-level failures are retried, every other response is returned
immediately. After the last attempt the last observed response is returned
as-is (a final 503 reaches the caller as a 503), or the last transport error
is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

from gallerysync.config import settings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
RATE_LIMIT_BASE_DELAY_MS = 5000
MAX_DELAY_MS = 30000
JITTER_RATIO = 0.2


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code <= 599


def backoff_delay_ms(
    attempt: int,
    rate_limited: bool = False,
    base_ms: int = BASE_DELAY_MS,
    rate_limit_base_ms: int = RATE_LIMIT_BASE_DELAY_MS,
    cap_ms: int = MAX_DELAY_MS,
) -> int:
    """Pre-jitter delay after failed attempt ``attempt`` (0-indexed)."""
    base = rate_limit_base_ms if rate_limited else base_ms
    return min(base * 2 ** attempt, cap_ms)


def apply_jitter(delay_ms: float, ratio: float = JITTER_RATIO, rng: random.Random | None = None) -> float:
    """Uniform +/- ``ratio`` around ``delay_ms``, clamped at zero."""
    spread = (rng or random).uniform(-1.0, 1.0)
    return max(0.0, delay_ms + delay_ms * ratio * spread)


class RetryTransport(httpx.AsyncBaseTransport):
    """httpx transport decorator applying the retry/backoff policy."""

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        max_attempts: int = settings.retry_max_attempts,
        base_delay_ms: int = settings.retry_base_delay_ms,
        rate_limit_base_delay_ms: int = settings.retry_rate_limit_base_delay_ms,
        max_delay_ms: int = settings.retry_max_delay_ms,
        jitter_ratio: float = settings.retry_jitter_ratio,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        is_offline: Callable[[], bool] | None = None,
        rng: random.Random | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._wrapped = wrapped
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._rate_limit_base_delay_ms = rate_limit_base_delay_ms
        self._max_delay_ms = max_delay_ms
        self._jitter_ratio = jitter_ratio
        self._sleep = sleep
        self._is_offline = is_offline
        self._rng = rng

    def delay_for(self, attempt: int, rate_limited: bool) -> float:
        """Jittered delay in milliseconds after failed attempt ``attempt``."""
        capped = backoff_delay_ms(
            attempt,
            rate_limited,
            base_ms=self._base_delay_ms,
            rate_limit_base_ms=self._rate_limit_base_delay_ms,
            cap_ms=self._max_delay_ms,
        )
        return apply_jitter(capped, self._jitter_ratio, self._rng)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        for attempt in range(self._max_attempts):
            last_attempt = attempt == self._max_attempts - 1
            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.TransportError as e:
                if last_attempt:
                    logger.error(
                        "%s %s failed after %d attempts: %s",
                        request.method, request.url.path, self._max_attempts, e,
                    )
                    raise
                if self._is_offline is not None and self._is_offline():
                    logger.info("Offline, not retrying %s %s", request.method, request.url.path)
                    raise
                await self._wait(attempt, False, request, repr(e))
                continue

            if last_attempt or not is_retryable_status(response.status_code):
                return response

            await response.aclose()
            await self._wait(attempt, response.status_code == 429, request, f"HTTP {response.status_code}")

        raise RuntimeError("unreachable: retry loop exited without a result")

    async def _wait(self, attempt: int, rate_limited: bool, request: httpx.Request, reason: str) -> None:
        delay_ms = self.delay_for(attempt, rate_limited)
        logger.warning(
            "%s %s attempt %d/%d failed (%s), retrying in %.0fms",
            request.method, request.url.path, attempt + 1, self._max_attempts, reason, delay_ms,
        )
        # Cancellation of the caller aborts the wait immediately
        await self._sleep(delay_ms / 1000.0)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
