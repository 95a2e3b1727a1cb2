"""Debounced execution for search-as-you-type."""

import asyncio
from typing import Any, Awaitable, Callable, Optional


class Debouncer:
    """Runs only the last call made within ``delay`` seconds.

    Each call cancels the pending timer task and starts a new one, so a burst
    of keystrokes ends in a single invocation with the final arguments.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay: float = 0.3):
        self.func = func
        self.delay = delay
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire(*args, **kwargs))
        return self._task

    async def _fire(self, *args: Any, **kwargs: Any) -> Any:
        await asyncio.sleep(self.delay)
        return await self.func(*args, **kwargs)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> Any:
        """Wait for the pending call, if any; a cancelled one yields None."""
        task = self._task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            return None


class SequenceGuard:
    """Tags requests with increasing numbers so stale responses can be dropped."""

    def __init__(self):
        self.current = 0

    def next(self) -> int:
        self.current += 1
        return self.current

    def invalidate(self) -> None:
        self.current += 1

    def is_current(self, token: int) -> bool:
        return token == self.current
