"""
Background jobs for the BlueRock back office.

Runs the periodic sweep of expired one-time codes.

Standalone Usage:
    python -m app.infrastructure.scheduler.main
"""

import asyncio
import signal
from datetime import timezone

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import scheduler_logger, settings


# The only job is re-registered on every start, so nothing needs persisting
scheduler = AsyncIOScheduler(
    jobstores={"codes": MemoryJobStore()},
    timezone=timezone.utc,
)


def schedule_purge_expired_codes_job(interval_minutes: int = 15) -> None:
    """
    Sweep expired one-time codes every ``interval_minutes``.
    """
    from app.infrastructure.scheduler.jobs import purge_expired_codes

    scheduler_logger.info(
        f"Scheduling 'purge_expired_codes' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        purge_expired_codes,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="purge_expired_codes_job",
        jobstore="codes",
        misfire_grace_time=60 * 5,
        max_instances=1,
        coalesce=True,
    )
    scheduler_logger.info("'purge_expired_codes' job scheduled successfully.")


def initialize_scheduler() -> None:
    """
    Register every periodic job. Call after ``scheduler.start()``.
    """
    schedule_purge_expired_codes_job(
        interval_minutes=settings.OTP_SWEEP_INTERVAL_MINUTES
    )


async def main() -> None:
    """
    Run the scheduler on its own until SIGINT or SIGTERM arrives.

    Used by ``manage.py runscheduler`` when the API instances run with
    ``ENABLE_SCHEDULER=false``.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    initialize_scheduler()
    scheduler_logger.info(
        f"Standalone scheduler running; jobs: {[job.id for job in scheduler.get_jobs()]}"
    )
    try:
        await stop.wait()
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=True)
        scheduler_logger.info("Standalone scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
