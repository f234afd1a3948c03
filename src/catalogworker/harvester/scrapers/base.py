"""
Source scraper patterns.

Every source implements ``SourceScraper.fetch(limit)`` and returns an
in-memory list of raw records. Three driving patterns are provided:

- PagedScraper: increasing page/offset parameter, optionally per partition
  (category, subject). Stops on an empty page, on ``limit`` or on
  ``max_pages``. A failed fetch ends the partition, keeping what was
  collected.
- CursorScraper: follows the continuation URL returned by the source.
  A failed fetch ends the source, keeping what was collected.
- KeyspaceScraper: one request per candidate key when no listing endpoint
  exists. Misses and individual failures are skipped.

A fixed ``delay`` (seconds) is awaited between fetches.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import httpx

from ...config import ScraperConfig
from ...errors import ScraperError
from ..fetcher import RateLimitedFetcher

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
Request = Tuple[str, Optional[Dict[str, Any]]]

# Raised by parsers on upstream payloads of an unexpected shape
PARSE_ERRORS = (ValueError, AttributeError, TypeError, KeyError)


@dataclass
class ScrapeContext:
    """Collaborators handed to scraper factories for one run."""

    fetcher: RateLimitedFetcher
    config: ScraperConfig


class SourceScraper(ABC):
    """Collects raw records for one external source."""

    source: str = "scraper"
    delay: float = 0.0

    def __init__(self, fetcher: RateLimitedFetcher):
        self.fetcher = fetcher

    @classmethod
    def from_context(cls, context: ScrapeContext) -> "SourceScraper":
        """Default factory used by the registry."""
        return cls(context.fetcher)

    @abstractmethod
    async def fetch(self, limit: int) -> List[RawRecord]:
        """Return at most ``limit`` raw records."""

    def _parse(self, parse: Callable[..., Optional[RawRecord]], item: Any, *args: Any) -> Optional[RawRecord]:
        """Run ``parse`` on one listed item; a malformed item is dropped."""
        try:
            return parse(item, *args)
        except PARSE_ERRORS as e:
            logger.warning(f"{self.source} skipping malformed item: {e!r}")
            return None


class PagedScraper(SourceScraper):
    """Offset/page pagination, optionally repeated per partition."""

    max_pages: int = 10
    first_page: int = 1
    page_step: int = 1

    def partitions(self) -> Sequence[Optional[str]]:
        return (None,)

    def partition_limit(self, limit: int) -> Optional[int]:
        """Per-partition cap, None = only the global limit applies."""
        return None

    @abstractmethod
    def page_request(self, partition: Optional[str], page: int) -> Request:
        """URL and query params for one page."""

    @abstractmethod
    def extract_items(self, payload: Any) -> List[Any]:
        """Items listed on a page; empty means the listing is exhausted."""

    @abstractmethod
    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        """Map one listed item to a raw record, None to drop it."""

    async def fetch(self, limit: int) -> List[RawRecord]:
        records: List[RawRecord] = []
        for partition in self.partitions():
            if len(records) >= limit:
                break
            await self._collect_partition(partition, records, limit)
        return records[:limit]

    async def _collect_partition(
        self,
        partition: Optional[str],
        records: List[RawRecord],
        limit: int,
    ) -> None:
        cap = self.partition_limit(limit)
        collected = 0
        page = self.first_page

        for _ in range(self.max_pages):
            if len(records) >= limit or (cap is not None and collected >= cap):
                return

            url, params = self.page_request(partition, page)
            try:
                payload = await self.fetcher.get_json(url, params=params)
            except (ScraperError, ValueError) as e:
                where = f"{partition} page {page}" if partition else f"page {page}"
                logger.error(f"{self.source} error ({where}): {e}")
                return

            try:
                items = self.extract_items(payload)
            except PARSE_ERRORS as e:
                logger.error(f"{self.source} unreadable listing (page {page}): {e!r}")
                return
            if not items:
                return

            for item in items:
                record = self._parse(self.parse_item, item, partition)
                if record is not None:
                    records.append(record)
                    collected += 1

            page += self.page_step
            await self.fetcher.pause(self.delay)


class CursorScraper(SourceScraper):
    """Follows the source's own continuation cursor."""

    max_pages: Optional[int] = None

    @abstractmethod
    def start_request(self) -> Request:
        """URL and params of the first page."""

    @abstractmethod
    def next_url(self, payload: Any) -> Optional[str]:
        """Continuation URL, None when the listing is exhausted."""

    @abstractmethod
    def extract_items(self, payload: Any) -> List[Any]:
        ...

    @abstractmethod
    def parse_item(self, item: Any) -> Optional[RawRecord]:
        ...

    async def fetch(self, limit: int) -> List[RawRecord]:
        records: List[RawRecord] = []
        url, params = self.start_request()
        pages = 0

        while url and len(records) < limit:
            if self.max_pages is not None and pages >= self.max_pages:
                break
            try:
                payload = await self.fetcher.get_json(url, params=params)
            except (ScraperError, ValueError) as e:
                logger.error(f"{self.source} error: {e}")
                break

            try:
                items = self.extract_items(payload)
                next_url = self.next_url(payload)
            except PARSE_ERRORS as e:
                logger.error(f"{self.source} unreadable listing: {e!r}")
                break

            for item in items:
                record = self._parse(self.parse_item, item)
                if record is not None:
                    records.append(record)

            pages += 1
            url, params = next_url, None
            await self.fetcher.pause(self.delay)

        return records[:limit]


class KeyspaceScraper(SourceScraper):
    """Enumerates a deterministic key space, one detail request per key.

    ``max_consecutive_misses`` ends a partition early once that many keys in
    a row produced nothing (sequential id spaces are dense at the start).
    """

    miss_statuses: Tuple[int, ...] = (404,)
    max_consecutive_misses: Optional[int] = None

    def partitions(self) -> Iterable[Optional[Hashable]]:
        return (None,)

    @abstractmethod
    def keys(self, partition: Optional[Hashable]) -> Iterable[str]:
        """Candidate keys of one partition, in a deterministic order."""

    @abstractmethod
    def detail_request(self, key: str) -> Request:
        ...

    @abstractmethod
    def parse_detail(self, key: str, response: httpx.Response) -> List[RawRecord]:
        """Records found under ``key``; empty list means no record."""

    async def fetch(self, limit: int) -> List[RawRecord]:
        records: List[RawRecord] = []
        for partition in self.partitions():
            if len(records) >= limit:
                break
            await self._enumerate(partition, records, limit)
        return records[:limit]

    async def _enumerate(
        self,
        partition: Optional[Hashable],
        records: List[RawRecord],
        limit: int,
    ) -> None:
        misses = 0
        for key in self.keys(partition):
            if len(records) >= limit:
                return

            found = await self._fetch_key(key)
            records.extend(found)
            misses = 0 if found else misses + 1
            await self.fetcher.pause(self.delay)

            if self.max_consecutive_misses is not None and misses >= self.max_consecutive_misses:
                logger.debug(f"{self.source}: {misses} misses in a row, leaving {partition}")
                return

    async def _fetch_key(self, key: str) -> List[RawRecord]:
        url, params = self.detail_request(key)
        try:
            response = await self.fetcher.get(
                url, params=params, accept_statuses=self.miss_statuses
            )
        except ScraperError as e:
            logger.warning(f"{self.source} skipping {key}: {e}")
            return []

        if response.status_code in self.miss_statuses:
            return []

        try:
            return self.parse_detail(key, response)
        except PARSE_ERRORS as e:
            logger.warning(f"{self.source} unreadable record {key}: {e}")
            return []
