"""Batching utilities for the whale tracker.

Outbound RPC calls are funnelled through a rate limited queue that drains in
fixed-size batches with a pause between batches.
"""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, TypeVar

from whale_tracker.logging_config import get_logger

# Type variable for task results
T = TypeVar('T')

logger = get_logger(__name__)

Task = Callable[[], Awaitable[Any]]


class RateLimitedBatchProcessor:
    """
    Queue of zero-argument coroutine factories drained in paced batches.

    Every task in a batch runs concurrently. The processor sleeps between
    batches only while more work is queued, and a single drain loop serves
    all submitters.
    """

    def __init__(self, batch_size: int = 10, delay: float = 1.0):
        """
        Initialize a batch processor.

        Args:
            batch_size: Maximum number of tasks per batch
            delay: Pause between batches in seconds
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.delay = delay
        self.queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self.processing_task: Optional[asyncio.Task] = None
        self.completed = 0
        self.failed = 0

    @property
    def is_processing(self) -> bool:
        """Whether a drain loop is currently running."""
        return self.processing_task is not None and not self.processing_task.done()

    @property
    def pending(self) -> int:
        """Number of queued tasks not yet started."""
        return len(self.queue)

    def submit(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """
        Queue a task and return a future for its result.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            Future resolved with the task's result or exception
        """
        future = asyncio.get_running_loop().create_future()
        self.queue.append((task, future))

        if not self.is_processing:
            self.processing_task = asyncio.create_task(self._process_queue())

        return future

    async def add(self, task: Callable[[], Awaitable[T]]) -> T:
        """Submit a task and wait for its result."""
        return await self.submit(task)

    async def _process_queue(self) -> None:
        """Drain the queue batch by batch."""
        while self.queue:
            size = min(self.batch_size, len(self.queue))
            batch = [self.queue.popleft() for _ in range(size)]

            await asyncio.gather(*(self._run(task, future) for task, future in batch))

            if self.queue:
                await asyncio.sleep(self.delay)

    async def _run(self, task: Task, future: asyncio.Future) -> None:
        """Run one task and settle its future."""
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            self.failed += 1
            if not future.done():
                future.set_exception(e)
        else:
            self.completed += 1
            if not future.done():
                future.set_result(result)

    def cancel_all(self) -> None:
        """Cancel the drain loop and every queued task."""
        if self.processing_task is not None:
            self.processing_task.cancel()
            self.processing_task = None

        while self.queue:
            _, future = self.queue.popleft()
            if not future.done():
                future.cancel()
