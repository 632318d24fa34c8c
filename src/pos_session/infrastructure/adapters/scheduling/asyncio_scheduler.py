from __future__ import annotations

import asyncio
import inspect

from pos_session.application.ports.scheduler_port import SchedulerPort, TimerCallback
from pos_session.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class AsyncioTimer:
    """Cancellable timer; for repeating timers the underlying handle changes each run."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler(SchedulerPort):
    """Timers on the running asyncio loop.

    Coroutine callbacks are wrapped in tasks; a failing callback is logged
    and never stops a repeating timer.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: TimerCallback) -> AsyncioTimer:
        timer = AsyncioTimer()

        def fire() -> None:
            timer._handle = None
            if not timer.cancelled:
                self._run(callback)

        timer._handle = self.loop.call_later(max(delay, 0.0), fire)
        return timer

    def call_every(
        self, interval: float, callback: TimerCallback, *, first_delay: float | None = None
    ) -> AsyncioTimer:
        if interval <= 0:
            raise ValueError("interval must be positive")
        timer = AsyncioTimer()

        def fire() -> None:
            if timer.cancelled:
                return
            timer._handle = self.loop.call_later(interval, fire)
            self._run(callback)

        delay = interval if first_delay is None else max(first_delay, 0.0)
        timer._handle = self.loop.call_later(delay, fire)
        return timer

    async def drain(self) -> None:
        """Wait for callback tasks that are still running."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _run(self, callback: TimerCallback) -> None:
        try:
            result = callback()
        except Exception:
            logger.exception("timer callback %r failed", callback)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self.loop)
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("timer task failed", exc_info=exc)
