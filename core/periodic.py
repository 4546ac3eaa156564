# core/periodic.py
import asyncio
from typing import Awaitable, Callable, Optional
import logging

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs `action` every `interval_seconds` until stopped.

    The owner calls start() and, on shutdown, `await stop()`; stop() wakes the
    timer immediately and waits for a tick that is already running. A failing
    tick is logged and the schedule continues.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], Awaitable[object]],
    ) -> None:
        self._name = name
        self._interval = interval_seconds
        self._action = action
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self._name}")
        logger.info("periodic.start name=%s interval=%ss", self._name, self._interval)

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("periodic.stopped name=%s", self._name)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await self._action()
            except Exception as e:
                logger.error("periodic.tick.error name=%s err=%s", self._name, e)
