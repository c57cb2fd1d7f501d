"""Periodic job scheduler with explicit start, stop and clean shutdown.

Each PeriodicTask runs its callback, then waits ``interval`` seconds, until
stopped. Stopping wakes the wait immediately, lets an in-flight callback
finish for up to ``shutdown_timeout`` seconds, then cancels it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from aggregator.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds in a background task.

    Args:
        name: Job name used in logs.
        interval: Seconds between the end of one run and the start of the next.
        callback: Coroutine function invoked on each run.
        run_immediately: Run once at start instead of after the first interval.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        run_immediately: bool = True,
    ) -> None:
        self.name = name
        self._interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop. Must be called from a running event loop."""
        if self.running:
            logger.warning("scheduled_task_already_running", task=self.name)
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name=f"scheduler:{self.name}")
        logger.info("scheduled_task_started", task=self.name, interval=self._interval)

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop the loop, waiting up to ``timeout`` seconds for an in-flight run."""
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("scheduled_task_cancelled", task=self.name, timeout=timeout)
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("scheduled_task_stopped", task=self.name, runs=self.runs)

    async def run_once(self) -> None:
        """Invoke the callback once, logging instead of raising on failure."""
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("scheduled_task_error", task=self.name, exc_info=True)
        finally:
            self.runs += 1

    async def _loop(self) -> None:
        if not self._run_immediately and await self._wait_interval():
            return
        while not self._stop_event.is_set():
            await self.run_once()
            if await self._wait_interval():
                return

    async def _wait_interval(self) -> bool:
        """Sleep for one interval; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True


class Scheduler:
    """Owns a set of PeriodicTasks and their shared lifecycle."""

    def __init__(self, shutdown_timeout: float = 10.0) -> None:
        self._tasks: dict[str, PeriodicTask] = {}
        self._shutdown_timeout = shutdown_timeout

    def add(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        run_immediately: bool = True,
    ) -> PeriodicTask:
        if name in self._tasks:
            raise ValueError(f"task {name!r} already scheduled")
        task = PeriodicTask(name, interval, callback, run_immediately)
        self._tasks[name] = task
        return task

    def get(self, name: str) -> PeriodicTask | None:
        return self._tasks.get(name)

    @property
    def task_names(self) -> list[str]:
        return list(self._tasks)

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()

    async def stop(self) -> None:
        """Stop all tasks concurrently and wait for them to finish."""
        await asyncio.gather(
            *(task.stop(self._shutdown_timeout) for task in self._tasks.values())
        )
        logger.info("scheduler_stopped", tasks=len(self._tasks))
