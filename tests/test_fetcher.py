"""
Tests for the retrying fetcher.
"""

import httpx
import pytest

from catalogworker.errors import FetchExhaustedError
from catalogworker.harvester.fetcher import fetch_with_retry

from .helpers import RecordingSleep, mock_client

URL = "https://api.example.test/items"


def sequence_handler(*responses):
    """Serve responses in order; an exception instance is raised instead."""
    remaining = list(responses)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = remaining.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    handler.seen = seen
    return handler


class TestFetchWithRetry:
    """Test retry and backoff behaviour."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        sleep = RecordingSleep()
        handler = sequence_handler(httpx.Response(200, json={"ok": True}))

        async with mock_client(handler) as client:
            response = await fetch_with_retry(client, URL, sleep=sleep)

        assert response.json() == {"ok": True}
        assert len(handler.seen) == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_backs_off_then_succeeds(self):
        """429 waits 5s x attempt before retrying."""
        sleep = RecordingSleep()
        handler = sequence_handler(
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json=[1]),
        )

        async with mock_client(handler) as client:
            response = await fetch_with_retry(client, URL, sleep=sleep)

        assert response.status_code == 200
        assert sleep.calls == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self):
        sleep = RecordingSleep()
        handler = sequence_handler(*(httpx.Response(500) for _ in range(3)))

        async with mock_client(handler) as client:
            with pytest.raises(FetchExhaustedError) as exc_info:
                await fetch_with_retry(client, URL, max_retries=3, sleep=sleep)

        assert exc_info.value.attempts == 3
        assert exc_info.value.status_code == 500
        assert len(handler.seen) == 3
        # no wait after the final attempt
        assert sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self):
        """429 on every attempt gives up with the 429 status."""
        sleep = RecordingSleep()
        handler = sequence_handler(*(httpx.Response(429) for _ in range(3)))

        async with mock_client(handler) as client:
            with pytest.raises(FetchExhaustedError) as exc_info:
                await fetch_with_retry(client, URL, max_retries=3, sleep=sleep)

        assert exc_info.value.status_code == 429
        assert len(handler.seen) == 3
        assert sleep.calls == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        sleep = RecordingSleep()
        handler = sequence_handler(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, text="ok"),
        )

        async with mock_client(handler) as client:
            response = await fetch_with_retry(client, URL, sleep=sleep)

        assert response.text == "ok"
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_retries(self):
        sleep = RecordingSleep()
        handler = sequence_handler(*(httpx.ReadTimeout("slow") for _ in range(2)))

        async with mock_client(handler) as client:
            with pytest.raises(FetchExhaustedError) as exc_info:
                await fetch_with_retry(client, URL, max_retries=2, sleep=sleep)

        assert isinstance(exc_info.value.last_error, httpx.ReadTimeout)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_accepted_status_returned_without_retry(self):
        """404 during keyspace enumeration is an answer, not a failure."""
        sleep = RecordingSleep()
        handler = sequence_handler(httpx.Response(404))

        async with mock_client(handler) as client:
            response = await fetch_with_retry(client, URL, sleep=sleep, accept_statuses=(404,))

        assert response.status_code == 404
        assert len(handler.seen) == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_query_params_passed_through(self):
        handler = sequence_handler(httpx.Response(200, json=[]))

        async with mock_client(handler) as client:
            await fetch_with_retry(client, URL, params={"page": 2}, sleep=RecordingSleep())

        assert handler.seen[0].url.params["page"] == "2"


class TestRateLimitedFetcher:
    """Test the fetcher wrapper."""

    @pytest.mark.asyncio
    async def test_get_json(self, make_fetcher):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"data": [1, 2]}))

        assert await fetcher.get_json(URL) == {"data": [1, 2]}

    @pytest.mark.asyncio
    async def test_pause_uses_injected_sleep(self, make_fetcher, sleep):
        fetcher = make_fetcher(lambda request: httpx.Response(200))

        await fetcher.pause(0.3)
        await fetcher.pause(0)

        assert sleep.calls == [0.3]

    @pytest.mark.asyncio
    async def test_max_retries_applied(self, make_fetcher):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        fetcher = make_fetcher(handler, max_retries=2)

        with pytest.raises(FetchExhaustedError):
            await fetcher.get(URL)
        assert len(calls) == 2
