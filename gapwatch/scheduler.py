# gapwatch/scheduler.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional

class PeriodicTask:
    """
    Runs an async callback every `interval` seconds until stopped.
    Owned and started/stopped explicitly by whoever creates it.
    """
    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[None]],
                 logger: logging.Logger,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.name = name
        self.interval = interval
        self.callback = callback
        self.logger = logger
        self.sleep = sleep
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name=self.name)

    async def stop(self):
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_loop(self):
        while True:
            await self.sleep(self.interval)
            try:
                await self.callback()
            except Exception as e:
                self.logger.error(f"Periodic task '{self.name}' failed: {e}")
            self.runs += 1
