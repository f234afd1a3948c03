"""Source registry: domain -> destination table, transformer and sources.

Static mapping built once at import time:

    from catalogworker.harvester.registry import default_registry

    sources = default_registry.resolve("cards", "all")   # [pokemon, scryfall]
    domain = default_registry.get_domain("cards")        # table, transformer

Descriptors are frozen; a registry is only mutated while it is being built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Tuple

from ..config import ScraperConfig
from ..errors import UnknownDomain, UnknownSource
from .scrapers import (
    CocktailDbScraper,
    GutenbergScraper,
    OpenBreweryScraper,
    OpenFoodFactsScraper,
    OpenLibraryScraper,
    PokemonTcgScraper,
    PunkApiScraper,
    ScrapeContext,
    ScryfallScraper,
    SourceScraper,
    TtbColaScraper,
    UntappdScraper,
)
from .transformers import BookTransformer, CardTransformer, SpiritTransformer, Transformer

logger = logging.getLogger(__name__)

ALL_SOURCES = "all"
SCHEDULES = ("daily", "weekly", "monthly")

ScraperFactory = Callable[[ScrapeContext], SourceScraper]


@dataclass(frozen=True)
class SourceDescriptor:
    """One external provider within a domain."""

    key: str
    name: str
    factory: ScraperFactory
    schedule: str = "weekly"
    estimated: int = 0
    default_limit: int = 10000
    requires_auth: bool = False
    credentials: Tuple[str, ...] = ()  # ScraperConfig attribute names

    def __post_init__(self):
        if self.schedule not in SCHEDULES:
            raise ValueError(f"Unknown schedule '{self.schedule}' for source {self.key}")

    def missing_credentials(self, config: ScraperConfig) -> List[str]:
        """Names of required credentials absent from ``config``."""
        if not self.requires_auth:
            return []
        return [name for name in self.credentials if not getattr(config, name, "")]

    def build(self, context: ScrapeContext) -> SourceScraper:
        return self.factory(context)


@dataclass(frozen=True)
class DomainDescriptor:
    """A data category with its own destination table and canonical schema."""

    key: str
    table: str
    transformer: Transformer
    sources: Mapping[str, SourceDescriptor] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))

    @property
    def source_keys(self) -> List[str]:
        return list(self.sources)


class SourceRegistry:
    """Registry of domains and their sources, in registration order."""

    def __init__(self):
        self._domains: Dict[str, DomainDescriptor] = {}

    def register_domain(self, domain: DomainDescriptor) -> None:
        """Register a domain; duplicates are skipped."""
        if domain.key in self._domains:
            logger.warning(f"Domain {domain.key} already registered, skipping")
            return

        self._domains[domain.key] = domain
        logger.debug(f"Registered domain: {domain.key} -> {domain.table} ({domain.source_keys})")

    def get_domain(self, key: str) -> DomainDescriptor:
        if key not in self._domains:
            raise UnknownDomain(key, self.list_domains())
        return self._domains[key]

    def list_domains(self) -> List[str]:
        return list(self._domains)

    def resolve(self, domain: str, source: str = ALL_SOURCES) -> List[SourceDescriptor]:
        """Sources to run for a request.

        ``"all"`` expands to every source of the domain in registration
        order; any other selector must name exactly one registered source.
        """
        descriptor = self.get_domain(domain)
        if source == ALL_SOURCES:
            return list(descriptor.sources.values())
        if source not in descriptor.sources:
            raise UnknownSource(domain, source, descriptor.source_keys)
        return [descriptor.sources[source]]

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Summary used by the status endpoint."""
        return {
            key: {
                "table": domain.table,
                "sources": domain.source_keys,
                "description": domain.description,
            }
            for key, domain in self._domains.items()
        }


def _sources(*descriptors: SourceDescriptor) -> Dict[str, SourceDescriptor]:
    return {d.key: d for d in descriptors}


def build_default_registry() -> SourceRegistry:
    """Registry of every built-in domain and source."""
    registry = SourceRegistry()

    registry.register_domain(
        DomainDescriptor(
            key="spirits",
            table="bv_spirits",
            transformer=SpiritTransformer(),
            description="Spirits, beer, wine, cocktails and TTB COLA label approvals",
            sources=_sources(
                SourceDescriptor(
                    key="openfoodfacts",
                    name="Open Food Facts",
                    factory=OpenFoodFactsScraper.from_context,
                    schedule="daily",
                    estimated=20000,
                ),
                SourceDescriptor(
                    key="brewery",
                    name="Open Brewery DB",
                    factory=OpenBreweryScraper.from_context,
                    estimated=9000,
                ),
                SourceDescriptor(
                    key="punkapi",
                    name="PunkAPI (BrewDog)",
                    factory=PunkApiScraper.from_context,
                    estimated=300,
                ),
                SourceDescriptor(
                    key="cocktaildb",
                    name="TheCocktailDB",
                    factory=CocktailDbScraper.from_context,
                    estimated=600,
                ),
                SourceDescriptor(
                    key="untappd",
                    name="Untappd",
                    factory=UntappdScraper.from_context,
                    schedule="daily",
                    estimated=1000,  # per run, rate limited
                    requires_auth=True,
                    credentials=("untappd_client_id", "untappd_client_secret"),
                ),
                SourceDescriptor(
                    key="ttb_cola",
                    name="TTB COLA Public Registry",
                    factory=TtbColaScraper.from_context,
                    schedule="daily",
                    estimated=500000,
                    default_limit=250,  # ~1 request per second
                ),
            ),
        )
    )

    registry.register_domain(
        DomainDescriptor(
            key="cards",
            table="cards",
            transformer=CardTransformer(),
            description="Trading cards (Pokemon, MTG)",
            sources=_sources(
                SourceDescriptor(
                    key="pokemon",
                    name="Pokemon TCG API",
                    factory=PokemonTcgScraper.from_context,
                    estimated=15000,
                ),
                SourceDescriptor(
                    key="scryfall",
                    name="Scryfall (MTG)",
                    factory=ScryfallScraper.from_context,
                    estimated=80000,
                    default_limit=50000,
                ),
            ),
        )
    )

    registry.register_domain(
        DomainDescriptor(
            key="books",
            table="books",
            transformer=BookTransformer(),
            description="Books and ebooks",
            sources=_sources(
                SourceDescriptor(
                    key="openlibrary",
                    name="Open Library",
                    factory=OpenLibraryScraper.from_context,
                    estimated=50000,
                ),
                SourceDescriptor(
                    key="gutenberg",
                    name="Project Gutenberg",
                    factory=GutenbergScraper.from_context,
                    schedule="monthly",
                    estimated=70000,
                ),
            ),
        )
    )

    return registry


# Global singleton
default_registry = build_default_registry()


__all__ = [
    "ALL_SOURCES",
    "SourceDescriptor",
    "DomainDescriptor",
    "SourceRegistry",
    "build_default_registry",
    "default_registry",
]
