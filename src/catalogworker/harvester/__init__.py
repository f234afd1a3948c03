"""
Harvester module: catalog scraping pipeline.

Components:
- fetcher: retrying, rate-limit aware HTTP fetcher
- scrapers: one scraper per external source
- transformers: raw record -> canonical record per domain
- registry: domain/source lookup
- uploader: batched bulk insert into the datastore
- orchestrator: Scrape -> Transform -> Upload flow
- scheduler: APScheduler cron triggers
"""

from .fetcher import RateLimitedFetcher, fetch_with_retry
from .orchestrator import ScrapeOrchestrator, ScrapeReport, SourceResult, run_scrape
from .registry import (
    DomainDescriptor,
    SourceDescriptor,
    SourceRegistry,
    build_default_registry,
    default_registry,
)
from .scheduler import HarvesterScheduler
from .transformers import transform
from .uploader import BatchUploader, UploadOutcome

__all__ = [
    "RateLimitedFetcher",
    "fetch_with_retry",
    "ScrapeOrchestrator",
    "ScrapeReport",
    "SourceResult",
    "run_scrape",
    "DomainDescriptor",
    "SourceDescriptor",
    "SourceRegistry",
    "build_default_registry",
    "default_registry",
    "HarvesterScheduler",
    "transform",
    "BatchUploader",
    "UploadOutcome",
]
