"""Throttled execution of async tasks in fixed-size batches."""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from ..utils.log import LoggerMixin

TaskFactory = Callable[[], Awaitable[Any]]


class BatchQueue(LoggerMixin):
    """FIFO of zero-argument coroutine functions drained in batches.

    Each batch runs concurrently and is allowed to settle completely; a
    failing task only fails its own future. Batches are separated by
    ``delay`` seconds. A single drain loop runs at a time, guarded by
    ``processing``, and it restarts on the next ``enqueue`` once idle.
    """

    def __init__(self, batch_size: int = 10, delay: float = 0.1):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.delay = delay
        self.queue: Deque[Tuple[TaskFactory, asyncio.Future]] = deque()
        self.processing = False
        self.batches_run = 0
        self._drain_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self.queue)

    def enqueue(self, task: TaskFactory) -> "asyncio.Future[Any]":
        """Queue ``task``; the returned future settles with its own outcome."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self.queue.append((task, future))
        if not self.processing:
            self.processing = True
            self._drain_task = loop.create_task(self._process())
        return future

    async def wait_idle(self) -> None:
        """Wait until the current drain loop (if any) has finished."""
        if self._drain_task is not None:
            await self._drain_task

    @staticmethod
    async def _run(task: TaskFactory) -> Any:
        return await task()

    async def _process(self) -> None:
        try:
            while self.queue:
                size = min(self.batch_size, len(self.queue))
                batch = [self.queue.popleft() for _ in range(size)]
                results = await asyncio.gather(
                    *(self._run(task) for task, _ in batch),
                    return_exceptions=True,
                )
                self.batches_run += 1

                failures = 0
                for (_, future), result in zip(batch, results):
                    if future.done():
                        continue
                    if isinstance(result, asyncio.CancelledError):
                        future.cancel()
                    elif isinstance(result, BaseException):
                        failures += 1
                        future.set_exception(result)
                    else:
                        future.set_result(result)

                self.logger.debug(
                    "Batch settled", size=size, failures=failures, remaining=len(self.queue)
                )

                if self.queue:
                    await asyncio.sleep(self.delay)
        finally:
            self.processing = False
