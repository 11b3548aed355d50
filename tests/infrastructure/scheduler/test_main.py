"""
Test suite for scheduler initialization.

Run tests:
    pytest tests/infrastructure/scheduler/test_main.py -v
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.infrastructure.scheduler.jobs import purge_expired_codes
from app.infrastructure.scheduler.main import (
    initialize_scheduler,
    main,
    schedule_purge_expired_codes_job,
    scheduler,
)


class TestScheduler:

    def test_scheduler_is_async_io_scheduler(self):
        assert isinstance(scheduler, AsyncIOScheduler)

    def test_scheduler_has_utc_timezone(self):
        assert str(scheduler.timezone) == "UTC"


class TestSchedulePurgeExpiredCodesJob:

    def test_registers_job(self):
        with patch.object(scheduler, "add_job") as mock_add_job:
            schedule_purge_expired_codes_job(interval_minutes=5)

        mock_add_job.assert_called_once()
        args, kwargs = mock_add_job.call_args
        assert args[0] is purge_expired_codes
        assert kwargs["id"] == "purge_expired_codes_job"
        assert kwargs["jobstore"] == "codes"
        assert kwargs["replace_existing"] is True
        assert kwargs["max_instances"] == 1
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["trigger"].interval.total_seconds() == 300

    def test_initialize_uses_sweep_interval_setting(self):
        with patch(
            "app.infrastructure.scheduler.main.schedule_purge_expired_codes_job"
        ) as mock_schedule:
            initialize_scheduler()

        mock_schedule.assert_called_once_with(
            interval_minutes=settings.OTP_SWEEP_INTERVAL_MINUTES
        )


class TestStandaloneMain:

    @pytest.mark.asyncio
    async def test_runs_until_stopped_then_shuts_down(self):
        fake_scheduler = MagicMock(running=True)
        fake_scheduler.get_jobs.return_value = [MagicMock(id="purge_expired_codes_job")]
        stop = MagicMock()
        stop.wait = AsyncMock()
        loop = asyncio.get_running_loop()

        with (
            patch("app.infrastructure.scheduler.main.scheduler", fake_scheduler),
            patch("app.infrastructure.scheduler.main.initialize_scheduler") as init,
            patch("app.infrastructure.scheduler.main.asyncio.Event", return_value=stop),
            patch.object(loop, "add_signal_handler") as add_handler,
        ):
            await main()

        fake_scheduler.start.assert_called_once()
        init.assert_called_once()
        assert add_handler.call_count == 2
        fake_scheduler.shutdown.assert_called_once_with(wait=True)
