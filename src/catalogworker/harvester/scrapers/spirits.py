"""Spirits, beer, wine and cocktail sources."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import httpx
from bs4 import BeautifulSoup

from ...errors import MissingCredentialsError, ScraperError
from ..fetcher import RateLimitedFetcher
from .base import (
    PARSE_ERRORS,
    KeyspaceScraper,
    PagedScraper,
    RawRecord,
    Request,
    ScrapeContext,
)

logger = logging.getLogger(__name__)


def _first(value: Optional[str], sep: str = ",") -> str:
    """First entry of a separated list field."""
    return (value or "").split(sep)[0].strip()


class OpenFoodFactsScraper(PagedScraper):
    """Open Food Facts search, one paginated listing per spirit category."""

    source = "openfoodfacts"
    delay = 0.3
    max_pages = 20

    URL = "https://world.openfoodfacts.org/cgi/search.pl"
    CATEGORIES = (
        "en:spirits",
        "en:whiskies",
        "en:vodkas",
        "en:rums",
        "en:gins",
        "en:tequilas",
        "en:brandies",
        "en:liqueurs",
    )
    FIELDS = "code,product_name,brands,alcohol_100g,image_front_url,quantity,countries"

    def partitions(self) -> Sequence[Optional[str]]:
        return self.CATEGORIES

    def partition_limit(self, limit: int) -> Optional[int]:
        return max(1, limit // len(self.CATEGORIES))

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return self.URL, {
            "action": "process",
            "tagtype_0": "categories",
            "tag_contains_0": "contains",
            "tag_0": partition,
            "page_size": 100,
            "page": page,
            "json": 1,
            "fields": self.FIELDS,
        }

    def extract_items(self, payload: Any) -> List[Any]:
        return (payload or {}).get("products") or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        if not item.get("product_name"):
            return None
        return {
            "name": item["product_name"],
            "brand": _first(item.get("brands")),
            "category": partition,
            "size": item.get("quantity") or "",
            "abv": item.get("alcohol_100g"),
            "image_url": item.get("image_front_url"),
            "upc": item.get("code"),
            "country": _first(item.get("countries")),
            "source": self.source,
        }


class OpenBreweryScraper(PagedScraper):
    """Open Brewery DB, 200 breweries per page."""

    source = "openbrewerydb"
    delay = 0.2
    max_pages = 50

    URL = "https://api.openbrewerydb.org/v1/breweries"

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return self.URL, {"per_page": 200, "page": page}

    def extract_items(self, payload: Any) -> List[Any]:
        return payload or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        region = ", ".join(p for p in (item.get("city"), item.get("state")) if p)
        return {
            "name": item.get("name"),
            "brand": item.get("name"),
            "category": "beer",
            "country": item.get("country") or "USA",
            "region": region,
            "distillery": item.get("name"),
            "source_url": item.get("website_url"),
            "external_ids": {"openbrewerydb": item.get("id")},
            "source": self.source,
        }


class PunkApiScraper(PagedScraper):
    """PunkAPI (BrewDog catalog), 80 beers per page."""

    source = "punkapi"
    delay = 0.3
    max_pages = 10

    URL = "https://api.punkapi.com/v2/beers"

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return self.URL, {"page": page, "per_page": 80}

    def extract_items(self, payload: Any) -> List[Any]:
        return payload or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        return {
            "name": item.get("name"),
            "brand": "BrewDog",
            "category": "beer",
            "abv": item.get("abv"),
            "description": item.get("description") or "",
            "image_url": item.get("image_url"),
            "external_ids": {"punkapi": item.get("id")},
            "source": self.source,
        }


class CocktailDbScraper(KeyspaceScraper):
    """TheCocktailDB: ingredient list, then cocktails enumerated by first letter."""

    source = "thecocktaildb"
    delay = 0.2

    BASE = "https://www.thecocktaildb.com/api/json/v1/1"
    LETTERS = "abcdefghijklmnopqrstuvwxyz"

    async def fetch(self, limit: int) -> List[RawRecord]:
        records = await self._fetch_ingredients()
        if len(records) >= limit:
            return records[:limit]
        return records + await super().fetch(limit - len(records))

    async def _fetch_ingredients(self) -> List[RawRecord]:
        try:
            payload = await self.fetcher.get_json(f"{self.BASE}/list.php", params={"i": "list"})
            drinks = (payload or {}).get("drinks") or []
        except (ScraperError, *PARSE_ERRORS) as e:
            logger.error(f"CocktailDB ingredients error: {e!r}")
            return []

        records = []
        for drink in drinks:
            record = self._parse(self._parse_ingredient, drink)
            if record is not None:
                records.append(record)
        return records

    def _parse_ingredient(self, drink: Any) -> Optional[RawRecord]:
        if not drink.get("strIngredient1"):
            return None
        return {
            "name": drink["strIngredient1"],
            "category": drink["strIngredient1"],
            "source": self.source,
        }

    def keys(self, partition) -> Iterable[str]:
        return self.LETTERS

    def detail_request(self, key: str) -> Request:
        return f"{self.BASE}/search.php", {"f": key}

    def parse_detail(self, key: str, response: httpx.Response) -> List[RawRecord]:
        drinks = (response.json() or {}).get("drinks") or []
        return [
            {
                "name": drink.get("strDrink"),
                "category": drink.get("strCategory") or "cocktail",
                "description": drink.get("strInstructions") or "",
                "image_url": drink.get("strDrinkThumb"),
                "external_ids": {"thecocktaildb": drink.get("idDrink")},
                "source": self.source,
            }
            for drink in drinks
        ]


class UntappdScraper(KeyspaceScraper):
    """Untappd beer search, one query per style.

    The public quota is 100 calls/hour, hence the 40s delay.
    """

    source = "untappd"
    delay = 40.0

    URL = "https://api.untappd.com/v4/search/beer"
    STYLES = ("IPA", "Stout", "Porter", "Lager", "Pilsner", "Wheat", "Pale Ale", "Sour")

    def __init__(self, fetcher: RateLimitedFetcher, client_id: str, client_secret: str):
        super().__init__(fetcher)
        if not client_id or not client_secret:
            raise MissingCredentialsError("UNTAPPD_CLIENT_ID/UNTAPPD_CLIENT_SECRET")
        self.client_id = client_id
        self.client_secret = client_secret

    @classmethod
    def from_context(cls, context: ScrapeContext) -> "UntappdScraper":
        return cls(
            context.fetcher,
            context.config.untappd_client_id,
            context.config.untappd_client_secret,
        )

    def keys(self, partition) -> Iterable[str]:
        return self.STYLES

    def detail_request(self, key: str) -> Request:
        return self.URL, {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "q": key,
            "limit": 50,
        }

    def parse_detail(self, key: str, response: httpx.Response) -> List[RawRecord]:
        data = response.json() or {}
        if (data.get("meta") or {}).get("code") != 200:
            return []

        records = []
        for item in ((data.get("response") or {}).get("beers") or {}).get("items") or []:
            beer = item.get("beer") or {}
            brewery = item.get("brewery") or {}
            records.append(
                {
                    "name": beer.get("beer_name"),
                    "brand": brewery.get("brewery_name"),
                    "category": "beer",
                    "subcategory": beer.get("beer_style") or "",
                    "abv": beer.get("beer_abv"),
                    "description": beer.get("beer_description") or "",
                    "image_url": beer.get("beer_label"),
                    "country": brewery.get("country_name") or "",
                    "region": (brewery.get("location") or {}).get("brewery_city") or "",
                    "distillery": brewery.get("brewery_name"),
                    "external_ids": {"untappd": beer.get("bid")},
                    "source": self.source,
                }
            )
        return records


class TtbColaScraper(KeyspaceScraper):
    """TTB COLA public registry (US label approvals).

    There is no listing endpoint, so TTB ids are enumerated directly:
    ``YY`` + julian day ``DDD`` + receipt code ``RRR`` + sequence ``NNNNNN``.
    Partitions are (year, day); within a day sequences are dense, so a short
    run of misses moves on to the next day. Detail pages are HTML and parsed
    best-effort.
    """

    source = "ttb_cola"
    delay = 1.0
    max_consecutive_misses = 5

    URL = "https://ttbonline.gov/colasonline/viewColaDetails.do"
    RECEIPT_CODE = 1
    FIELD_LABELS = {
        "brand": "Brand Name",
        "fanciful": "Fanciful Name",
        "class_type": "Class/Type Description",
        "origin": "Origin Code",
        "alcohol": "Alcohol Content",
        "applicant": "Applicant",
    }

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        years: Optional[Sequence[int]] = None,
        days: Sequence[int] = range(1, 367),
        max_sequence: int = 200,
    ):
        super().__init__(fetcher)
        if years is None:
            this_year = date.today().year
            years = (this_year, this_year - 1)
        self.years = tuple(years)
        self.days = tuple(days)
        self.max_sequence = max_sequence

    def partitions(self) -> Iterable[Tuple[int, int]]:
        for year in self.years:
            for day in self.days:
                yield year % 100, day

    def keys(self, partition) -> Iterable[str]:
        yy, day = partition
        for seq in range(1, self.max_sequence + 1):
            yield f"{yy:02d}{day:03d}{self.RECEIPT_CODE:03d}{seq:06d}"

    def detail_request(self, key: str) -> Request:
        return self.URL, {"action": "publicFormDisplay", "ttbid": key}

    def parse_detail(self, key: str, response: httpx.Response) -> List[RawRecord]:
        soup = BeautifulSoup(response.text, "html.parser")
        fields = {
            name: self._labelled_value(soup, label)
            for name, label in self.FIELD_LABELS.items()
        }
        if not fields["brand"]:
            return []

        return [
            {
                "name": fields["fanciful"] or fields["brand"],
                "brand": fields["brand"],
                "category": fields["class_type"],
                "abv": fields["alcohol"] or None,
                "country": fields["origin"],
                "distillery": fields["applicant"],
                "source_url": f"{self.URL}?action=publicFormDisplay&ttbid={key}",
                "external_ids": {"ttb_id": key},
                "source": self.source,
            }
        ]

    @staticmethod
    def _labelled_value(soup: BeautifulSoup, label: str) -> str:
        """Text following a ``Label:`` cell, or empty string."""
        pattern = re.compile(rf"^\s*{re.escape(label)}\s*:?\s*$", re.IGNORECASE)
        node = soup.find(string=pattern)
        if node is None:
            return ""
        value = node.find_next(string=lambda s: bool(s and s.strip()))
        # next cell is another label: the field is blank
        if value is None or value.strip().endswith(":"):
            return ""
        return " ".join(value.split())
