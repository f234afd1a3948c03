"""Book sources (Open Library subjects, Project Gutenberg via Gutendex)."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from .base import PagedScraper, RawRecord, Request


class OpenLibraryScraper(PagedScraper):
    """Open Library subject listings, offset-paginated up to 1000 per subject."""

    source = "openlibrary"
    delay = 0.5
    page_size = 100
    first_page = 0
    page_step = page_size
    max_pages = 10

    SUBJECTS = ("fiction", "fantasy", "science_fiction", "mystery", "romance", "history")

    def partitions(self) -> Sequence[Optional[str]]:
        return self.SUBJECTS

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return f"https://openlibrary.org/subjects/{partition}.json", {
            "limit": self.page_size,
            "offset": page,
        }

    def extract_items(self, payload: Any) -> List[Any]:
        return (payload or {}).get("works") or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        authors = item.get("authors") or [{}]
        return {
            "title": item.get("title"),
            "author": authors[0].get("name") or "",
            "subject": partition,
            "cover_id": item.get("cover_id"),
            "first_publish_year": item.get("first_publish_year"),
            "source": self.source,
            "source_id": item.get("key"),
        }


class GutenbergScraper(PagedScraper):
    """Project Gutenberg catalog through the Gutendex API."""

    source = "gutenberg"
    delay = 0.5
    max_pages = 100

    URL = "https://gutendex.com/books/"

    def page_request(self, partition: Optional[str], page: int) -> Request:
        return self.URL, {"page": page}

    def extract_items(self, payload: Any) -> List[Any]:
        return (payload or {}).get("results") or []

    def parse_item(self, item: Any, partition: Optional[str]) -> Optional[RawRecord]:
        authors = item.get("authors") or [{}]
        return {
            "title": item.get("title"),
            "author": authors[0].get("name") or "",
            "subjects": ", ".join(item.get("subjects") or []),
            "languages": ", ".join(item.get("languages") or []),
            "download_count": item.get("download_count") or 0,
            "source": self.source,
            "source_id": item.get("id"),
        }
