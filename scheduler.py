import asyncio
from typing import Awaitable, Callable, List, Optional, Set

from logger import setup_logger

logger = setup_logger('scheduler')


class PeriodicTask:
    """
    Run a coroutine function every ``interval`` seconds until cancelled.

    Each fire runs as its own task, so a slow run does not delay the next tick
    and overlapping fires are not coalesced. Cancelling stops future ticks
    only; runs already in flight finish on their own.
    """

    def __init__(self, name: str, callback: Callable[[], Awaitable], interval: float,
                 run_immediately: bool = True):
        self.name = name
        self.callback = callback
        self.interval = interval
        self.run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> "PeriodicTask":
        if self.running:
            return self
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Started periodic task {self.name} every {self.interval}s")
        return self

    async def _loop(self):
        if not self.run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            run = asyncio.create_task(self._fire())
            self._in_flight.add(run)
            run.add_done_callback(self._in_flight.discard)
            await asyncio.sleep(self.interval)

    async def _fire(self):
        try:
            await self.callback()
        except Exception as e:
            # The next tick retries
            logger.error(f"Error in periodic task {self.name}: {str(e)}")

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info(f"Cancelled periodic task {self.name}")
        self._task = None


class ViewScope:
    """
    Lifetime of one consumer view: owns its periodic tasks and gates updates.

    Closing the scope cancels every task it started. Requests still in flight
    are left to complete, but their results go through ``guard`` and are
    dropped once the scope is closed.
    """

    def __init__(self, name: str):
        self.name = name
        self.active = True
        self.tasks: List[PeriodicTask] = []

    def every(self, interval: float, callback: Callable[[], Awaitable], name: Optional[str] = None,
              run_immediately: bool = True) -> PeriodicTask:
        if not self.active:
            raise RuntimeError(f"View scope {self.name} is closed")
        task = PeriodicTask(name or f"{self.name}.{len(self.tasks)}", callback, interval, run_immediately)
        self.tasks.append(task)
        return task.start()

    def guard(self, update: Callable, *args) -> bool:
        """Apply a state update only while the scope is open"""
        if not self.active:
            logger.debug(f"Dropped update after {self.name} closed")
            return False
        update(*args)
        return True

    def close(self):
        if not self.active:
            return
        self.active = False
        for task in self.tasks:
            task.cancel()
        self.tasks.clear()
        logger.info(f"Closed view scope {self.name}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
        return False
