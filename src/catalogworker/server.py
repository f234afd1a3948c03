"""HTTP server bootstrap for catalogworker.

Serves the FastAPI app with uvicorn; optionally runs the cron scheduler
in the same event loop.
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn

from .api import create_app
from .config import ScraperConfig, get_config
from .harvester.scheduler import HarvesterScheduler

logger = logging.getLogger(__name__)


async def serve(config: Optional[ScraperConfig] = None, *, with_scheduler: bool = False) -> None:
    """Start the HTTP trigger/status service."""
    config = config or get_config()
    app = create_app(config)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
        )
    )

    scheduler = HarvesterScheduler(config) if with_scheduler else None
    if scheduler:
        scheduler.start()

    logger.info(f"{config.service_name} {config.service_version} starting on {config.host}:{config.port}")
    try:
        # uvicorn installs its own SIGINT/SIGTERM handlers
        await server.serve()
    finally:
        if scheduler:
            scheduler.stop()
        logger.info("Server stopped.")


__all__ = ["serve"]
