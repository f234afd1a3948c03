"""
Source scrapers.

One class per external source, built on the patterns in ``base``.
"""

from .base import (
    CursorScraper,
    KeyspaceScraper,
    PagedScraper,
    RawRecord,
    ScrapeContext,
    SourceScraper,
)
from .books import GutenbergScraper, OpenLibraryScraper
from .cards import PokemonTcgScraper, ScryfallScraper
from .spirits import (
    CocktailDbScraper,
    OpenBreweryScraper,
    OpenFoodFactsScraper,
    PunkApiScraper,
    TtbColaScraper,
    UntappdScraper,
)

__all__ = [
    "SourceScraper",
    "PagedScraper",
    "CursorScraper",
    "KeyspaceScraper",
    "ScrapeContext",
    "RawRecord",
    "OpenFoodFactsScraper",
    "OpenBreweryScraper",
    "PunkApiScraper",
    "CocktailDbScraper",
    "UntappdScraper",
    "TtbColaScraper",
    "PokemonTcgScraper",
    "ScryfallScraper",
    "OpenLibraryScraper",
    "GutenbergScraper",
]
