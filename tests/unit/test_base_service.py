"""Unit tests for BaseService.

This module tests the periodic job scheduling of the base service.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from whale_tracker.services.base_service import BaseService
from whale_tracker.utils.error_handling import MarketDataError


class TestBaseService:
    """Test suite for BaseService."""

    @pytest.fixture
    def base_service(self):
        """Create a BaseService instance for testing."""
        service = BaseService(logger=MagicMock())
        service.running = True
        return service

    @pytest.mark.asyncio
    async def test_measure_performance(self, base_service):
        """Test that measure_performance returns the result and logs the timing."""
        # Setup
        async def job(value):
            return value * 2

        # Execute
        result = await base_service.measure_performance(job, value=21)

        # Verify
        assert result == 42
        base_service.logger.debug.assert_called_once()

    @pytest.mark.asyncio
    async def test_periodic_job_runs_repeatedly(self, base_service):
        """Test that a scheduled job runs on every interval."""
        # Setup
        runs = 0

        async def job():
            nonlocal runs
            runs += 1

        # Execute
        base_service.schedule("counter", 0.01, job)
        await asyncio.sleep(0.05)
        await base_service.stop()

        # Verify
        assert runs >= 2
        assert base_service.running is False

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_the_loop(self, base_service):
        """Test that failing runs are logged and the job keeps running."""
        # Setup
        runs = 0

        async def flaky():
            nonlocal runs
            runs += 1
            if runs == 1:
                raise MarketDataError("HTTP 503", http_status=503)
            if runs == 2:
                raise RuntimeError("unexpected")

        # Execute
        base_service.schedule("flaky", 0.01, flaky)
        await asyncio.sleep(0.06)
        await base_service.stop()

        # Verify
        assert runs >= 3
        base_service.logger.error.assert_called_once()
        base_service.logger.exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_tasks(self, base_service):
        """Test that stop cancels scheduled tasks and clears them."""
        # Setup
        async def slow():
            await asyncio.sleep(10)

        task = base_service.schedule("slow", 1, slow)

        # Execute
        await asyncio.sleep(0)
        await base_service.stop()

        # Verify
        assert task.cancelled()
        assert base_service._tasks == []
