"""Trading card sources (Pokemon TCG, Magic: The Gathering)."""

from __future__ import annotations

from typing import Any, List, Optional

from .base import CursorScraper, PagedScraper, RawRecord, Request


def _market_price(card: dict) -> Optional[float]:
    prices = (card.get("tcgplayer") or {}).get("prices") or {}
    for finish in ("holofoil", "normal"):
        market = (prices.get(finish) or {}).get("market")
        if market is not None:
            return market
    return None


class PokemonTcgScraper(PagedScraper):
    """Pokemon TCG API, 250 cards per page."""

    source = "pokemontcg"
    delay = 0.5
    max_pages = 100

    URL = "https://api.pokemontcg.io/v2/cards"

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return self.URL, {"page": page, "pageSize": 250}

    def extract_items(self, payload: Any) -> List[Any]:
        return (payload or {}).get("data") or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        card_set = item.get("set") or {}
        images = item.get("images") or {}
        return {
            "name": item.get("name"),
            "set_name": card_set.get("name") or "",
            "set_id": card_set.get("id") or "",
            "number": item.get("number") or "",
            "rarity": item.get("rarity") or "",
            "types": ", ".join(item.get("types") or []),
            "hp": item.get("hp"),
            "image_url": images.get("large") or images.get("small"),
            "price_market": _market_price(item),
            "source": self.source,
        }


class ScryfallScraper(CursorScraper):
    """Scryfall card search; follows ``next_page`` while ``has_more``.

    Scryfall asks for 50-100ms between requests.
    """

    source = "scryfall"
    delay = 0.1

    URL = "https://api.scryfall.com/cards/search"

    def start_request(self) -> Request:
        return self.URL, {"q": "*", "unique": "cards"}

    def next_url(self, payload: Any) -> Optional[str]:
        payload = payload or {}
        return payload.get("next_page") if payload.get("has_more") else None

    def extract_items(self, payload: Any) -> List[Any]:
        return (payload or {}).get("data") or []

    def parse_item(self, item: Any) -> Optional[RawRecord]:
        images = item.get("image_uris") or {}
        return {
            "name": item.get("name"),
            "set_name": item.get("set_name") or "",
            "set_id": item.get("set") or "",
            "number": item.get("collector_number") or "",
            "rarity": item.get("rarity") or "",
            "mana_cost": item.get("mana_cost") or "",
            "type_line": item.get("type_line") or "",
            "image_url": images.get("normal") or images.get("small"),
            "price_market": (item.get("prices") or {}).get("usd"),
            "source": self.source,
        }
