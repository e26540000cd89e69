"""
Base service class for background whale tracker services.

This module provides a base class for services that run periodic jobs,
with common functionality for task lifecycle, timing and logging.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from whale_tracker.utils.error_handling import WhaleTrackerError


class BaseService:
    """
    Base service class with common functionality.

    This class provides:
    - Periodic job scheduling
    - Task lifecycle (start/stop)
    - Performance tracking
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the base service.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.running = False
        self._tasks: List[asyncio.Task] = []

    async def measure_performance(self, coro: Callable[..., Awaitable[Any]], **kwargs: Any) -> Any:
        """
        Measure the performance of a coroutine.

        Args:
            coro: The coroutine function to execute
            **kwargs: Arguments to pass to the coroutine

        Returns:
            The result of the coroutine
        """
        start_time = time.monotonic()
        result = await coro(**kwargs)
        elapsed_time = time.monotonic() - start_time

        self.logger.debug(f"Performance: {coro.__name__} took {elapsed_time:.4f}s")
        return result

    async def _periodic(self, name: str, interval: float, job: Callable[[], Awaitable[Any]]):
        """Run a job every ``interval`` seconds until the service stops.

        Errors raised by one run are logged and do not stop the loop.
        """
        while self.running:
            try:
                await self.measure_performance(job)
            except asyncio.CancelledError:
                raise
            except WhaleTrackerError as e:
                self.logger.error(f"Error in {name}: {e.message}")
            except Exception as e:
                self.logger.exception(f"Unexpected error in {name}: {str(e)}")
            await asyncio.sleep(interval)

    def schedule(self, name: str, interval: float, job: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        task = asyncio.create_task(self._periodic(name, interval, job), name=name)
        self._tasks.append(task)
        return task

    async def stop(self):
        """Cancel every scheduled task and wait for them to finish."""
        self.running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
