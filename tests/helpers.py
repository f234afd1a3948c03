"""
Test helpers: explicit config, recorded sleeps, stubbed HTTP.
"""

from typing import Any, Callable, List

import httpx

from catalogworker.config import ScraperConfig

DATASTORE_URL = "https://db.example.test"


class RecordingSleep:
    """Async sleep replacement that only records requested waits."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_config(**overrides: Any) -> ScraperConfig:
    values = dict(
        datastore_url=DATASTORE_URL,
        datastore_service_key="service-key",
        untappd_client_id="",
        untappd_client_secret="",
        scraper_secret="",
    )
    values.update(overrides)
    return ScraperConfig(**values)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
