"""
Scrape Orchestrator.

Orchestrates the Scrape -> Transform -> Upload flow for one domain.

Sources are processed strictly one after another. A failing source is
recorded and the run moves on; a missing datastore credential disables
uploads for the rest of the run but scraping continues.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import ScraperConfig
from ..errors import MissingCredentialsError
from .fetcher import RateLimitedFetcher, Sleep
from .registry import ALL_SOURCES, DomainDescriptor, SourceDescriptor, SourceRegistry, default_registry
from .scrapers import ScrapeContext
from .uploader import BatchUploader

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    """Outcome of one source within a run."""

    scraped: int = 0
    uploaded: int = 0
    errors: int = 0
    error: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "SourceResult":
        return cls(error=message)

    @classmethod
    def skip(cls, reason: str) -> "SourceResult":
        return cls(skipped=True, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        if self.skipped:
            return {"skipped": True, "reason": self.reason}
        return {
            "count": self.scraped,
            "scraped": self.scraped,
            "uploaded": self.uploaded,
            "errors": self.errors,
        }


@dataclass
class ScrapeReport:
    """Aggregated result of one orchestration run."""

    type: str
    source: str
    results: Dict[str, SourceResult] = field(default_factory=dict)
    duration_seconds: float = 0.0
    timestamp: str = ""
    upload_error: Optional[str] = None

    @property
    def total_scraped(self) -> int:
        return sum(r.scraped for r in self.results.values())

    @property
    def uploaded(self) -> int:
        return sum(r.uploaded for r in self.results.values())

    @property
    def errors(self) -> int:
        return sum(r.errors for r in self.results.values())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": True,
            "type": self.type,
            "source": self.source,
            "results": {key: r.to_dict() for key, r in self.results.items()},
            "total_scraped": self.total_scraped,
            "uploaded": self.uploaded,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp,
        }
        if self.upload_error:
            data["upload_error"] = self.upload_error
        return data


class ScrapeOrchestrator:
    """
    Orchestrates the Scrape -> Transform -> Upload flow.

    - Sources resolved through the registry ("all" or one key)
    - Scrapers share one retrying fetcher per run
    - Canonical records go to the domain's table in batches
    """

    def __init__(
        self,
        config: ScraperConfig,
        registry: Optional[SourceRegistry] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.registry = registry or default_registry
        self._client = client
        self._sleep = sleep

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": self.config.http.user_agent},
            timeout=self.config.http.timeout,
            follow_redirects=True,
        )

    async def run(
        self,
        domain: str,
        source: str = ALL_SOURCES,
        *,
        skip_upload: bool = False,
        limit: Optional[int] = None,
    ) -> ScrapeReport:
        """Run a scrape for ``domain``.

        Raises:
            UnknownDomain / UnknownSource: before any source is contacted.
        """
        descriptor = self.registry.get_domain(domain)
        sources = self.registry.resolve(domain, source)

        if self._client is not None:
            return await self._run(self._client, descriptor, source, sources, skip_upload, limit)

        async with self._new_client() as client:
            return await self._run(client, descriptor, source, sources, skip_upload, limit)

    async def _run(
        self,
        client: httpx.AsyncClient,
        descriptor: DomainDescriptor,
        selector: str,
        sources: List[SourceDescriptor],
        skip_upload: bool,
        limit: Optional[int],
    ) -> ScrapeReport:
        started = time.monotonic()
        report = ScrapeReport(type=descriptor.key, source=selector)
        context = ScrapeContext(
            fetcher=RateLimitedFetcher(
                client,
                max_retries=self.config.http.max_retries,
                timeout=self.config.http.timeout,
                sleep=self._sleep,
            ),
            config=self.config,
        )
        uploader = BatchUploader(self.config, client, sleep=self._sleep)
        upload_enabled = not skip_upload

        logger.info(
            f"Starting scrape type={descriptor.key} source={selector} "
            f"({len(sources)} sources, skip_upload={skip_upload}, limit={limit})"
        )

        for src in sources:
            missing = src.missing_credentials(self.config)
            if missing:
                reason = f"missing credentials: {', '.join(missing)}"
                logger.info(f"Skipping {src.name}: {reason}")
                report.results[src.key] = SourceResult.skip(reason)
                continue

            result, records = await self._scrape(src, descriptor, context, limit)

            if upload_enabled and records:
                try:
                    outcome = await uploader.upload(records, descriptor.table)
                except MissingCredentialsError as e:
                    logger.error(f"Upload disabled for this run: {e}")
                    report.upload_error = str(e)
                    upload_enabled = False
                else:
                    result.uploaded = outcome.uploaded
                    result.errors = outcome.errors

            report.results[src.key] = result

        report.duration_seconds = round(time.monotonic() - started, 1)
        report.timestamp = datetime.now(timezone.utc).isoformat()
        logger.info(
            f"Scrape complete: type={descriptor.key} scraped={report.total_scraped} "
            f"uploaded={report.uploaded} errors={report.errors} in {report.duration_seconds}s"
        )
        return report

    async def _scrape(
        self,
        src: SourceDescriptor,
        descriptor: DomainDescriptor,
        context: ScrapeContext,
        limit: Optional[int],
    ) -> Tuple[SourceResult, List[Dict[str, Any]]]:
        """Scrape and transform one source."""
        logger.info(f"Running {src.name}...")
        transformer = descriptor.transformer
        try:
            scraper = src.build(context)
            raw_items = await scraper.fetch(limit or src.default_limit)
            records = [transformer.apply(item) for item in raw_items]
        except Exception as e:
            logger.exception(f"Scrape failed for {src.key}")
            return SourceResult.failed(str(e) or e.__class__.__name__), []

        records = [r for r in records if transformer.has_title(r)]
        if len(records) < len(raw_items):
            logger.debug(f"{src.key}: dropped {len(raw_items) - len(records)} untitled records")

        logger.info(f"{src.name}: {len(raw_items)} scraped")
        return SourceResult(scraped=len(raw_items)), records


async def run_scrape(
    domain: str,
    source: str = ALL_SOURCES,
    *,
    skip_upload: bool = False,
    limit: Optional[int] = None,
    config: Optional[ScraperConfig] = None,
) -> ScrapeReport:
    """Run one scrape with the default registry.

    CLI and scheduler entry point.
    """
    if config is None:
        from ..config import get_config

        config = get_config()
    orchestrator = ScrapeOrchestrator(config)
    return await orchestrator.run(domain, source, skip_upload=skip_upload, limit=limit)
