"""
Tests for the periodic guide reload scheduler.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from tuner_guide.errors import FetchError
from tuner_guide.services.fetch_types import ReloadOutcome
from tuner_guide.services.scheduler_service import RELOAD_JOB_ID, GuideScheduler


def fake_guide(outcome=None, side_effect=None):
    guide = MagicMock()
    guide.reload = AsyncMock(return_value=outcome, side_effect=side_effect)
    return guide


class TestGuideScheduler:
    @pytest.mark.asyncio
    async def test_start_registers_reload_job(self):
        scheduler = GuideScheduler()

        scheduler.start(fake_guide(), "*/3 * * * *")
        try:
            assert scheduler.running
            assert scheduler.scheduler.get_job(RELOAD_JOB_ID) is not None
            assert scheduler.get_next_run_time() is not None
        finally:
            scheduler.shutdown()

        assert not scheduler.running
        assert scheduler.get_next_run_time() is None

    @pytest.mark.asyncio
    async def test_invalid_cron_raises(self):
        scheduler = GuideScheduler()

        with pytest.raises(ValueError):
            scheduler.start(fake_guide(), "not a cron")

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_reload_job_calls_guide(self):
        scheduler = GuideScheduler()
        guide = fake_guide(ReloadOutcome(status="fetched", services=3))
        scheduler._guide = guide

        await scheduler._reload_job()

        guide.reload.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_reload_job_swallows_failures(self):
        scheduler = GuideScheduler()
        scheduler._guide = fake_guide(ReloadOutcome(status="failed", error=FetchError("boom")))
        await scheduler._reload_job()

        scheduler._guide = fake_guide(side_effect=RuntimeError("unexpected"))
        await scheduler._reload_job()
