"""
Batch uploader for the datastore's PostgREST bulk-insert endpoint.

Records are sent in consecutive batches with an "ignore duplicates"
conflict policy, so re-running a scrape neither fails on nor duplicates
rows that are already present. A failed batch is counted and skipped;
only a missing service credential aborts the upload.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import ScraperConfig
from ..errors import MissingCredentialsError
from .fetcher import Sleep

logger = logging.getLogger(__name__)

PREFER_IGNORE_DUPLICATES = "resolution=ignore-duplicates,return=minimal"


@dataclass
class UploadOutcome:
    """Uploaded/errored record counts for one upload call."""

    uploaded: int = 0
    errors: int = 0

    def __add__(self, other: "UploadOutcome") -> "UploadOutcome":
        return UploadOutcome(self.uploaded + other.uploaded, self.errors + other.errors)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class BatchUploader:
    """Pushes canonical records to ``{datastore_url}/rest/v1/{table}``."""

    def __init__(
        self,
        config: ScraperConfig,
        client: httpx.AsyncClient,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.client = client
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        key = self.config.datastore_service_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": PREFER_IGNORE_DUPLICATES,
        }

    def _table_url(self, table: str) -> str:
        return f"{self.config.datastore_url.rstrip('/')}/rest/v1/{table}"

    async def upload(
        self,
        records: Sequence[Dict[str, Any]],
        table: str,
        batch_size: Optional[int] = None,
    ) -> UploadOutcome:
        """Upload ``records`` in batches.

        Raises:
            MissingCredentialsError: no datastore credential is configured.
        """
        if not self.config.datastore_service_key:
            raise MissingCredentialsError("SUPABASE_SERVICE_KEY")
        if not self.config.datastore_url:
            raise MissingCredentialsError("SUPABASE_URL")

        batch_size = batch_size or self.config.upload.batch_size
        url = self._table_url(table)
        outcome = UploadOutcome()
        reported_failure = False

        for start in range(0, len(records), batch_size):
            batch: List[Dict[str, Any]] = list(records[start : start + batch_size])
            batch_num = start // batch_size + 1

            try:
                response = await self.client.post(
                    url,
                    headers=self._headers(),
                    json=batch,
                    timeout=self.config.http.timeout,
                )
            except httpx.TransportError as e:
                outcome.errors += len(batch)
                logger.warning(f"Batch {batch_num} to {table} failed: {e!r}")
            else:
                if response.is_success:
                    outcome.uploaded += len(batch)
                else:
                    outcome.errors += len(batch)
                    if not reported_failure:
                        reported_failure = True
                        logger.error(
                            f"Upload error: {response.status_code} - {response.text[:200]}"
                        )

            if start + batch_size < len(records):
                await self._sleep(self.config.upload.batch_delay)

        logger.info(
            f"Uploaded to {table}: {outcome.uploaded} ok, {outcome.errors} errors"
        )
        return outcome

    async def check_connection(self, table: str = "bv_spirits") -> str:
        """``connected``, ``error`` or ``not_configured``."""
        if not self.config.datastore_configured:
            return "not_configured"
        try:
            response = await self.client.get(
                self._table_url(table),
                headers=self._headers(),
                params={"select": "id", "limit": 1},
                timeout=self.config.http.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Datastore check failed: {e!r}")
            return "error"
        return "connected" if response.is_success else "error"


__all__ = ["BatchUploader", "UploadOutcome", "PREFER_IGNORE_DUPLICATES"]
