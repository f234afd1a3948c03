"""
Rate-limited HTTP fetcher.

Single request with bounded retry and backoff. Every source scraper
builds on this:

    async with httpx.AsyncClient() as client:
        fetcher = RateLimitedFetcher(client)
        payload = await fetcher.get_json("https://api.example.com/items?page=1")

Retry policy (per attempt N, 1-based):
- 429: wait RATE_LIMIT_BACKOFF * N, then retry
- other non-2xx: HttpStatusError, wait ERROR_BACKOFF * N, then retry
- transport error/timeout: wait ERROR_BACKOFF * N, then retry
After max_retries attempts the last error is wrapped in FetchExhaustedError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Collection, Optional

import httpx

from ..errors import FetchExhaustedError, HttpStatusError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
RATE_LIMIT_BACKOFF = 5.0
ERROR_BACKOFF = 1.0


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout: float = DEFAULT_TIMEOUT,
    sleep: Sleep = asyncio.sleep,
    accept_statuses: Collection[int] = (),
    **kwargs: Any,
) -> httpx.Response:
    """Issue one request, retrying on rate limits and transient failures.

    Args:
        client: Shared async HTTP client
        url: Absolute request URL
        method: HTTP method
        max_retries: Total attempts before giving up
        timeout: Per-attempt timeout in seconds
        sleep: Awaitable wait primitive (injected in tests)
        accept_statuses: Non-2xx statuses returned as-is instead of retried
            (e.g. 404 while enumerating identifiers)
        **kwargs: Passed through to ``client.request`` (params, headers, json...)

    Returns:
        The first 2xx response, or one whose status is in ``accept_statuses``.

    Raises:
        FetchExhaustedError: every attempt failed.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_retries + 1):
        try:
            response = await client.request(method, url, timeout=timeout, **kwargs)
        except httpx.TransportError as e:
            last_error = e
            logger.debug(f"{method} {url} attempt {attempt} failed: {e!r}")
            if attempt < max_retries:
                await sleep(ERROR_BACKOFF * attempt)
            continue

        if response.is_success or response.status_code in accept_statuses:
            return response

        last_error = HttpStatusError(response.status_code, url)
        if attempt >= max_retries:
            break

        if response.status_code == 429:
            wait = RATE_LIMIT_BACKOFF * attempt
            logger.info(f"Rate limited by {url}, waiting {wait:.0f}s")
        else:
            wait = ERROR_BACKOFF * attempt
            logger.debug(f"{method} {url} attempt {attempt}: HTTP {response.status_code}")
        await sleep(wait)

    raise FetchExhaustedError(url, max_retries, last_error)


class RateLimitedFetcher:
    """Retrying fetcher bound to one client, timeout and wait primitive."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await fetch_with_retry(
            self.client,
            url,
            method=method,
            max_retries=self.max_retries,
            timeout=self.timeout,
            sleep=self._sleep,
            **kwargs,
        )

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET and decode the JSON body."""
        response = await self.get(url, **kwargs)
        return response.json()

    async def pause(self, seconds: float) -> None:
        """Inter-request throttle."""
        if seconds > 0:
            await self._sleep(seconds)


__all__ = [
    "RateLimitedFetcher",
    "fetch_with_retry",
    "RATE_LIMIT_BACKOFF",
    "ERROR_BACKOFF",
]
