"""Tests for scheduler service (releasewatch/services/scheduler.py).

Covers:
- Blocking initial refresh on start
- Interval job registration
- Startup with a failing registry
- Stop and status reporting
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from releasewatch.services.scheduler import REFRESH_JOB_ID, SchedulerService


@pytest.fixture
def mock_tracker():
    tracker = MagicMock()
    tracker.refresh_safely = AsyncMock(return_value=True)
    return tracker


class TestSchedulerLifecycle:
    """Test suite for start/stop."""

    async def test_start_refreshes_then_schedules(self, mock_tracker):
        """Test one blocking refresh and an interval job."""
        service = SchedulerService(tracker=mock_tracker)
        service.interval_minutes = 5
        try:
            await service.start()

            mock_tracker.refresh_safely.assert_awaited_once()
            job = service.scheduler.get_job(REFRESH_JOB_ID)
            assert job is not None
            assert isinstance(job.trigger, IntervalTrigger)
            assert job.trigger.interval.total_seconds() == 300
            assert job.max_instances == 1
        finally:
            await service.stop()

    async def test_start_survives_failed_refresh(self, mock_tracker):
        """Test startup continues when the registry is down."""
        mock_tracker.refresh_safely.return_value = False
        service = SchedulerService(tracker=mock_tracker)
        try:
            await service.start()
            assert service.get_status()["running"] is True
        finally:
            await service.stop()

    async def test_stop_clears_scheduler(self, mock_tracker):
        """Test status after stop."""
        service = SchedulerService(tracker=mock_tracker)
        await service.start()
        await service.stop()

        status = service.get_status()
        assert status["running"] is False
        assert status["next_run"] is None
        assert service.get_next_run_time() is None

    async def test_stop_without_start(self, mock_tracker):
        """Test stop is a no-op before start."""
        service = SchedulerService(tracker=mock_tracker)
        await service.stop()
        assert service.scheduler is None

    async def test_status_reports_next_run(self, mock_tracker):
        """Test next run time is exposed while running."""
        service = SchedulerService(tracker=mock_tracker)
        try:
            await service.start()
            status = service.get_status()
            assert status["next_run"] is not None
            assert status["interval_minutes"] == service.interval_minutes
        finally:
            await service.stop()


class TestRefreshInterval:
    """Test suite for interval configuration."""

    def test_reads_environment(self, monkeypatch, mock_tracker):
        """Test RELEASEWATCH_REFRESH_MINUTES is honoured."""
        monkeypatch.setenv("RELEASEWATCH_REFRESH_MINUTES", "15")
        assert SchedulerService(tracker=mock_tracker).interval_minutes == 15

    def test_invalid_value_falls_back(self, monkeypatch, mock_tracker):
        """Test a non-numeric value uses the default."""
        monkeypatch.setenv("RELEASEWATCH_REFRESH_MINUTES", "soon")
        assert SchedulerService(tracker=mock_tracker).interval_minutes == 5
