"""APScheduler setup and job registration."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from survey_ledger.config import settings
from survey_ledger.jobs.ttl_renewal import ttl_renewal

scheduler = AsyncIOScheduler(timezone=settings.timezone)


def register_jobs() -> None:
    """Register all periodic jobs if not already present."""
    if scheduler.get_job("ttl_renewal") is None:
        scheduler.add_job(
            ttl_renewal,
            CronTrigger(minute=settings.ttl_renewal_cron_minute, timezone=settings.timezone),
            id="ttl_renewal",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
