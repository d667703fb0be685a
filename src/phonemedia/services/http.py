"""Bounded retries for the gallery's HTTP requests."""

from __future__ import annotations

import asyncio
import email.utils
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVICE_UNAVAILABLE = 503
DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
# Statuses whose Retry-After header is worth honoring.
_RETRY_AFTER_STATUSES = frozenset({HTTP_TOO_MANY_REQUESTS, HTTP_SERVICE_UNAVAILABLE})
_JITTER_RANDOM = secrets.SystemRandom()


def _parse_retry_after_seconds(value: str) -> float | None:
    """Read a ``Retry-After`` value given either in seconds or as an HTTP date."""
    text = value.strip()
    if not text:
        return None
    try:
        seconds = float(text)
    except ValueError:
        try:
            moment = email.utils.parsedate_to_datetime(text)
        except (TypeError, ValueError, OSError):
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return max((moment - datetime.now(UTC)).total_seconds(), 0.0)
    return seconds if math.isfinite(seconds) and seconds >= 0 else None


def backoff_delay(
    attempt: int,
    *,
    response: httpx.Response | None = None,
    max_backoff_seconds: float = 10.0,
) -> float:
    """Seconds to wait before retry number ``attempt + 1``.

    A usable ``Retry-After`` wins over exponential backoff; either way the
    delay never exceeds ``max_backoff_seconds``.
    """
    if response is not None and response.status_code in _RETRY_AFTER_STATUSES:
        header = response.headers.get("retry-after")
        retry_after = _parse_retry_after_seconds(header) if header else None
        if retry_after is not None:
            return min(max_backoff_seconds, retry_after)
    return min(max_backoff_seconds, 2 ** (attempt + 1) + _JITTER_RANDOM.random())


async def wait_before_retry(
    attempt: int,
    *,
    response: httpx.Response | None = None,
    max_backoff_seconds: float = 10.0,
) -> None:
    delay = backoff_delay(
        attempt,
        response=response,
        max_backoff_seconds=max_backoff_seconds,
    )
    if delay > 0:
        await asyncio.sleep(delay)


@dataclass(frozen=True, slots=True)
class RetryOptions:
    """How often, and for which statuses, a request is repeated."""

    retries: int = 2
    max_backoff_seconds: float = 10.0
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt < self.retries

    def should_retry(self, attempt: int, response: httpx.Response) -> bool:
        return (
            response.status_code in self.retryable_statuses
            and self.has_attempts_left(attempt)
        )


async def request_with_retries(
    request_factory: Callable[[], Awaitable[httpx.Response]],
    *,
    options: RetryOptions | None = None,
    log_context: str = "request",
) -> httpx.Response:
    """Send a request, repeating it on transport errors and transient statuses.

    The final response is returned whatever its status; the final transport
    error is re-raised.
    """
    retry_options = options or RetryOptions()
    attempt = 0
    while True:
        try:
            response = await request_factory()
        except httpx.TransportError as exc:
            if not retry_options.has_attempts_left(attempt):
                raise
            logger.warning(
                "%s failed (%s/%s), retrying: %s",
                log_context,
                attempt + 1,
                retry_options.retries,
                exc,
            )
            await wait_before_retry(
                attempt,
                max_backoff_seconds=retry_options.max_backoff_seconds,
            )
        else:
            if not retry_options.should_retry(attempt, response):
                return response
            logger.warning(
                "%s returned HTTP %s (%s/%s), retrying",
                log_context,
                response.status_code,
                attempt + 1,
                retry_options.retries,
            )
            await response.aclose()
            await wait_before_retry(
                attempt,
                response=response,
                max_backoff_seconds=retry_options.max_backoff_seconds,
            )
        attempt += 1
