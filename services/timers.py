import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class Countdown:
    """One-shot deferred callback. ``cancel()`` before it fires suppresses it."""

    def __init__(self, delay: float, callback: Callback, name: str = "countdown"):
        self.delay = max(0.0, delay)
        self.callback = callback
        self.name = name
        self.fired = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "Countdown":
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self.fired = True
        try:
            await self.callback()
        except Exception:  # noqa: BLE001
            logger.exception("Countdown %s callback failed", self.name)

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done() and not self.fired:
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, callback: Callback, name: str = "periodic"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "PeriodicTask":
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.runs += 1
            try:
                await self.callback()
            except Exception:  # noqa: BLE001
                logger.exception("Periodic task %s failed", self.name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
