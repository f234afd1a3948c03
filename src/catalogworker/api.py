"""
HTTP trigger and status endpoints.

    GET /scrape?type=spirits&source=all&skip_upload=true&limit=100
    GET /status
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.responses import JSONResponse

from .config import ScraperConfig, get_config
from .errors import UnknownDomain, UnknownSource
from .harvester.orchestrator import ScrapeOrchestrator
from .harvester.registry import ALL_SOURCES, SourceRegistry, default_registry
from .harvester.scheduler import DEFAULT_SCHEDULES, scrape_path
from .harvester.uploader import BatchUploader

logger = logging.getLogger(__name__)


class Unauthorized(Exception):
    """Trigger request without the configured shared secret."""


def create_app(
    config: Optional[ScraperConfig] = None,
    registry: Optional[SourceRegistry] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Process configuration (default: loaded from environment)
        registry: Source registry (default: built-in sources)
        http_client: Shared outbound client; a fresh one per request when None
    """
    config = config or get_config()
    registry = registry or default_registry
    orchestrator = ScrapeOrchestrator(config, registry, client=http_client)

    app = FastAPI(title=config.service_name, version=config.service_version)

    @asynccontextmanager
    async def outbound_client() -> AsyncIterator[httpx.AsyncClient]:
        if http_client is not None:
            yield http_client
            return
        async with httpx.AsyncClient(timeout=config.http.timeout) as client:
            yield client

    def require_secret(authorization: Optional[str] = Header(default=None)) -> None:
        if config.scraper_secret and authorization != f"Bearer {config.scraper_secret}":
            raise Unauthorized()

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    @app.exception_handler(UnknownDomain)
    async def unknown_domain_handler(request: Request, exc: UnknownDomain) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "available": exc.available},
        )

    @app.exception_handler(UnknownSource)
    async def unknown_source_handler(request: Request, exc: UnknownSource) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc), "validSources": exc.valid_sources},
        )

    @app.get("/")
    async def index() -> Dict[str, Any]:
        return {
            "service": config.service_name,
            "version": config.service_version,
            "status": "operational",
            "description": "Catalog scraper for spirits, trading cards and books",
            "endpoints": {
                "status": "/status",
                "scrape": "/scrape?type={"
                + "|".join(registry.list_domains())
                + "}&source={all|<source>}",
            },
            "scheduledJobs": [
                {"path": scrape_path(s), "schedule": s.description} for s in DEFAULT_SCHEDULES
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/scrape", dependencies=[Depends(require_secret)])
    async def scrape(
        type: str = Query(default="spirits", description="Domain to scrape"),
        source: str = Query(default=ALL_SOURCES, description="Source key or 'all'"),
        skip_upload: bool = Query(default=False, description="Scrape and transform only"),
        limit: Optional[int] = Query(default=None, ge=1, description="Per-source record cap"),
    ) -> JSONResponse:
        """Run one scrape and return the aggregated report."""
        # Unknown type/source raise before any work and map to 400.
        registry.resolve(type, source)

        try:
            report = await orchestrator.run(type, source, skip_upload=skip_upload, limit=limit)
        except Exception as e:
            logger.exception("Scraper error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": str(e)},
            )
        return JSONResponse(content=report.to_dict())

    @app.get("/status")
    async def scraper_status() -> Dict[str, Any]:
        async with outbound_client() as client:
            datastore = await BatchUploader(config, client).check_connection()

        return {
            "status": "ok",
            "version": config.service_version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "scrapers": registry.describe(),
            "connections": {
                "datastore": datastore,
                "untappd": "configured" if config.untappd_configured else "not_configured",
            },
            "usage": {
                "all": "GET /scrape?type=spirits&source=all",
                "single": "GET /scrape?type=cards&source=pokemon",
                "skip_upload": "Add &skip_upload=true to test without uploading",
                "limit": "Add &limit=1000 to limit results",
            },
        }

    return app


__all__ = ["create_app"]
