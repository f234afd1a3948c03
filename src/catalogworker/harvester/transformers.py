"""
Transform layer: raw source records -> canonical per-domain records.

Canonical shapes are Pydantic models whose fields coerce instead of
rejecting: strings are truncated to the column width, numbers are parsed
best-effort (None on failure), categories fall through a keyword ladder.
``Transformer.apply`` never raises.
"""

import json
import logging
import math
import re
from enum import Enum
from typing import Annotated, Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, BeforeValidator, StringConstraints, ValidationError

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")


# =============================================================================
# Coercion helpers
# =============================================================================


def truncate(value: Any, max_length: int) -> str:
    """Stringify and cut to ``max_length``; None becomes empty string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return value[:max_length]


def to_number(value: Any) -> Optional[float]:
    """Best-effort numeric parse ("40%" -> 40.0), None when impossible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return None
        value = match.group()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    # long digit strings parse to inf
    return number if math.isfinite(number) else None


def to_integer(value: Any) -> Optional[int]:
    number = to_number(value)
    return int(number) if number is not None else None


def serialize_ids(value: Any) -> Optional[str]:
    """External identifiers as one compact JSON string, None when empty."""
    if isinstance(value, str):
        return value or None
    if not isinstance(value, dict):
        return None
    ids = {k: str(v) for k, v in sorted(value.items()) if v not in (None, "")}
    return json.dumps(ids, separators=(",", ":")) if ids else None


def Text(max_length: int) -> Any:
    """Annotated str that truncates instead of failing validation."""
    return Annotated[
        str,
        BeforeValidator(lambda v: truncate(v, max_length)),
        StringConstraints(max_length=max_length),
    ]


def OptionalText(max_length: int) -> Any:
    return Annotated[
        Optional[str],
        BeforeValidator(lambda v: truncate(v, max_length) or None),
    ]


Number = Annotated[Optional[float], BeforeValidator(to_number)]
Integer = Annotated[Optional[int], BeforeValidator(to_integer)]
ExternalIds = Annotated[
    Optional[str],
    BeforeValidator(lambda v: truncate(serialize_ids(v), 500) or None),
]


# =============================================================================
# Spirit category ladder
# =============================================================================


class SpiritCategory(str, Enum):
    BOURBON = "bourbon"
    VODKA = "vodka"
    GIN = "gin"
    RUM = "rum"
    TEQUILA = "tequila"
    WINE = "wine"
    BEER = "beer"
    OTHER = "other"


# First match wins. Specific keywords sit above generic ones:
# "ginger" must not reach the "gin" rule, "porter" must not reach "port".
SPIRIT_CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], SpiritCategory], ...] = (
    (("whisk", "bourbon", "scotch", "rye"), SpiritCategory.BOURBON),
    (("vodka",), SpiritCategory.VODKA),
    (("tequila", "mezcal"), SpiritCategory.TEQUILA),
    (("ginger", "brandy", "cognac", "armagnac", "liqueur"), SpiritCategory.OTHER),
    (("gin",), SpiritCategory.GIN),
    (("rum",), SpiritCategory.RUM),
    (("beer", "lager", "stout", "porter", "pilsner", "ipa", "malt beverage"), SpiritCategory.BEER),
    (("wine", "champagne", "prosecco", "port", "sherry"), SpiritCategory.WINE),
)


def map_spirit_category(raw: Any) -> SpiritCategory:
    """Normalize a free-form category through the keyword ladder."""
    if isinstance(raw, SpiritCategory):
        return raw
    text = truncate(raw, 500).lower()
    for keywords, category in SPIRIT_CATEGORY_RULES:
        if any(keyword in text for keyword in keywords):
            return category
    return SpiritCategory.OTHER


# =============================================================================
# Canonical records
# =============================================================================


class SpiritRecord(BaseModel):
    """Row of the spirits table."""

    name: Text(255) = ""
    brand: Text(255) = ""
    category: Annotated[SpiritCategory, BeforeValidator(map_spirit_category)] = SpiritCategory.OTHER
    size: Text(50) = ""
    abv: Number = None
    description: Text(2000) = ""
    image_url: OptionalText(2048) = None
    country: Text(100) = ""
    region: Text(100) = ""
    distillery: Text(255) = ""
    external_ids: ExternalIds = None
    source: Text(100) = "scraper"


class CardRecord(BaseModel):
    """Row of the cards table."""

    name: Text(255) = ""
    set_name: Text(255) = ""
    set_id: Text(50) = ""
    number: Text(50) = ""
    rarity: Text(50) = ""
    image_url: OptionalText(2048) = None
    price_market: Number = None
    source: Text(100) = "scraper"


class BookRecord(BaseModel):
    """Row of the books table."""

    title: Text(500) = ""
    author: Text(255) = ""
    subject: Text(255) = ""
    cover_id: Integer = None
    first_publish_year: Integer = None
    source: Text(100) = "scraper"
    source_id: Text(100) = ""


# =============================================================================
# Transformers
# =============================================================================


class Transformer:
    """Maps one raw record to a canonical dict. Never raises."""

    domain: str = ""
    model: Type[BaseModel]
    title_field: str = "name"

    def prepare(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Source-shape fixups before validation."""
        return raw

    def apply(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raw = {}
        fields = {
            name: value
            for name, value in self.prepare(raw).items()
            if name in self.model.model_fields and value is not None
        }
        try:
            record = self.model.model_validate(fields)
        except (ValidationError, ArithmeticError) as e:
            logger.warning(f"{self.domain}: falling back to defaults for record: {e}")
            record = self.model()
        return record.model_dump(mode="json")

    def has_title(self, record: Dict[str, Any]) -> bool:
        return bool(record.get(self.title_field))


class SpiritTransformer(Transformer):
    domain = "spirits"
    model = SpiritRecord

    def prepare(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(raw)
        if not fields.get("distillery"):
            fields["distillery"] = raw.get("brand")
        ids = raw.get("external_ids")
        if ids is None or isinstance(ids, dict):
            ids = dict(ids or {})
            for key, field in (("upc", "upc"), ("url", "source_url")):
                if raw.get(field):
                    ids.setdefault(key, raw[field])
        fields["external_ids"] = ids
        return fields


class CardTransformer(Transformer):
    domain = "cards"
    model = CardRecord

    def prepare(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(raw)
        if fields.get("price_market") is None:
            fields["price_market"] = raw.get("price_usd")
        return fields


class BookTransformer(Transformer):
    domain = "books"
    model = BookRecord
    title_field = "title"

    def prepare(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(raw)
        if not fields.get("subject"):
            fields["subject"] = raw.get("subjects")
        return fields


TRANSFORMERS: Dict[str, Transformer] = {
    t.domain: t for t in (SpiritTransformer(), CardTransformer(), BookTransformer())
}


def transform(domain: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Transform one raw record for ``domain``."""
    return TRANSFORMERS[domain].apply(raw)


__all__ = [
    "SpiritCategory",
    "SPIRIT_CATEGORY_RULES",
    "map_spirit_category",
    "SpiritRecord",
    "CardRecord",
    "BookRecord",
    "Transformer",
    "SpiritTransformer",
    "CardTransformer",
    "BookTransformer",
    "TRANSFORMERS",
    "transform",
    "truncate",
    "to_number",
]
