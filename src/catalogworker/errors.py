"""Exception taxonomy for the scrape pipeline.

Recovery points:
- UnknownDomain / UnknownSource: caller input, surfaced as HTTP 400
- HttpStatusError: one failed attempt inside the fetcher retry loop
- FetchExhaustedError: retry budget spent; caught by scrapers (partial
  results) or by the orchestrator (source marked errored)
- MissingCredentialsError: uploader precondition, never retried
"""

from __future__ import annotations

from typing import Iterable, Optional


class ScraperError(Exception):
    """Base class for catalogworker errors."""


class UnknownDomain(ScraperError):
    """Requested domain is not registered."""

    def __init__(self, domain: str, available: Iterable[str]):
        self.domain = domain
        self.available = list(available)
        super().__init__(f"Unknown type: {domain}")


class UnknownSource(ScraperError):
    """Requested source is not registered for the domain."""

    def __init__(self, domain: str, source: str, valid_sources: Iterable[str]):
        self.domain = domain
        self.source = source
        self.valid_sources = list(valid_sources)
        super().__init__(f"Unknown source '{source}' for type '{domain}'")


class HttpStatusError(ScraperError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code}" + (f" for {url}" if url else ""))


class FetchExhaustedError(ScraperError):
    """All retry attempts for a request failed."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException]):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up on {url} after {attempts} attempts: {last_error}")

    @property
    def status_code(self) -> Optional[int]:
        """Status of the last attempt when it failed on an HTTP status."""
        if isinstance(self.last_error, HttpStatusError):
            return self.last_error.status_code
        return None


class MissingCredentialsError(ScraperError):
    """A required credential is absent from configuration."""

    def __init__(self, credential: str):
        self.credential = credential
        super().__init__(f"Missing credential: {credential}")


__all__ = [
    "ScraperError",
    "UnknownDomain",
    "UnknownSource",
    "HttpStatusError",
    "FetchExhaustedError",
    "MissingCredentialsError",
]
