"""
Shared fixtures.
"""

import pytest

from catalogworker.config import ScraperConfig
from catalogworker.harvester.fetcher import RateLimitedFetcher

from .helpers import RecordingSleep, make_config, mock_client


@pytest.fixture
def config() -> ScraperConfig:
    return make_config()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_fetcher(sleep):
    """Build a fetcher over a MockTransport handler."""

    def _make(handler, max_retries: int = 3) -> RateLimitedFetcher:
        return RateLimitedFetcher(mock_client(handler), max_retries=max_retries, sleep=sleep)

    return _make
