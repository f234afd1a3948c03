"""
catalogworker - catalog scraping service.

Scrapes public catalog APIs (spirits, trading cards, books), normalizes
the records and bulk-inserts them into the datastore.

Usage:
    from catalogworker import ScrapeOrchestrator, get_config

    orchestrator = ScrapeOrchestrator(get_config())
    report = await orchestrator.run("cards", "pokemon", skip_upload=True)
"""

__version__ = "1.1.0"

from .config import ScraperConfig, get_config
from .errors import (
    FetchExhaustedError,
    HttpStatusError,
    MissingCredentialsError,
    ScraperError,
    UnknownDomain,
    UnknownSource,
)
from .harvester import (
    ScrapeOrchestrator,
    ScrapeReport,
    SourceResult,
    default_registry,
    run_scrape,
)

__all__ = [
    "__version__",
    # Config
    "ScraperConfig",
    "get_config",
    # Errors
    "ScraperError",
    "UnknownDomain",
    "UnknownSource",
    "HttpStatusError",
    "FetchExhaustedError",
    "MissingCredentialsError",
    # Orchestration
    "ScrapeOrchestrator",
    "ScrapeReport",
    "SourceResult",
    "default_registry",
    "run_scrape",
]
