"""
Scheduler for recurring scrapes.

Uses APScheduler to trigger the orchestrator on cron schedules (UTC):
- spirits/all daily at 03:00
- cards/pokemon, cards/scryfall, books/openlibrary on Sundays
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import ScraperConfig
from .orchestrator import ScrapeOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleConfig:
    """One recurring scrape."""

    schedule_id: str
    domain: str
    source: str
    cron: str
    description: str = ""


DEFAULT_SCHEDULES = [
    ScheduleConfig(
        schedule_id="spirits-daily",
        domain="spirits",
        source="all",
        cron="0 3 * * *",
        description="Daily 3 AM UTC",
    ),
    ScheduleConfig(
        schedule_id="cards-pokemon-weekly",
        domain="cards",
        source="pokemon",
        cron="0 4 * * sun",
        description="Weekly Sunday 4 AM UTC",
    ),
    ScheduleConfig(
        schedule_id="cards-scryfall-weekly",
        domain="cards",
        source="scryfall",
        cron="0 5 * * sun",
        description="Weekly Sunday 5 AM UTC",
    ),
    ScheduleConfig(
        schedule_id="books-openlibrary-weekly",
        domain="books",
        source="openlibrary",
        cron="0 6 * * sun",
        description="Weekly Sunday 6 AM UTC",
    ),
]


def scrape_path(schedule: ScheduleConfig) -> str:
    """Trigger URL equivalent to a schedule."""
    return f"/scrape?type={schedule.domain}&source={schedule.source}"


class HarvesterScheduler:
    """Runs scheduled scrapes inside the current event loop."""

    def __init__(
        self,
        config: ScraperConfig,
        orchestrator: Optional[ScrapeOrchestrator] = None,
        schedules: Sequence[ScheduleConfig] = DEFAULT_SCHEDULES,
    ):
        self.config = config
        self.orchestrator = orchestrator or ScrapeOrchestrator(config)
        self.schedules = list(schedules)
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    def start(self):
        """Register all schedules and start the scheduler."""
        for schedule in self.schedules:
            self.scheduler.add_job(
                self.run_schedule,
                trigger=CronTrigger.from_crontab(schedule.cron, timezone="UTC"),
                args=[schedule],
                id=schedule.schedule_id,
                name=schedule.description or schedule.schedule_id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        self.scheduler.start()
        logger.info(f"Scrape scheduler started with {len(self.schedules)} schedules")

    def stop(self):
        """Stop the scheduler."""
        self.scheduler.shutdown(wait=False)
        logger.info("Scrape scheduler stopped")

    def job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    async def run_schedule(self, schedule: ScheduleConfig) -> None:
        """Run one scheduled scrape; failures are logged, never raised."""
        logger.info(f"Scheduled scrape {schedule.schedule_id} starting")
        try:
            report = await self.orchestrator.run(schedule.domain, schedule.source)
            logger.info(
                f"Scheduled scrape {schedule.schedule_id} done: "
                f"scraped={report.total_scraped} uploaded={report.uploaded} errors={report.errors}"
            )
        except Exception as e:
            logger.exception(f"Scheduled scrape {schedule.schedule_id} failed: {e}")


# CLI entry point
async def run_scheduler(config: Optional[ScraperConfig] = None):
    """Run scheduler until interrupted."""
    import asyncio

    if config is None:
        from ..config import get_config

        config = get_config()

    scheduler = HarvesterScheduler(config)
    try:
        scheduler.start()
        while True:
            await asyncio.sleep(3600)
    finally:
        scheduler.stop()
