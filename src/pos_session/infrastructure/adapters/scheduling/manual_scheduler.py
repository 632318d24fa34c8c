from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from pos_session.application.ports.scheduler_port import SchedulerPort, TimerCallback


@dataclass(eq=False)
class ManualTimer:
    due: float
    callback: TimerCallback
    interval: float | None = None
    seq: int = 0
    _cancelled: bool = field(default=False, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler(SchedulerPort):
    """Virtual-time scheduler that also acts as the clock.

    Nothing fires on its own; advance() moves time forward and runs every
    timer that became due, in due order, awaiting coroutine callbacks.
    Used by the `simulate` command and the tests.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2025, 1, 1, 9, 0, tzinfo=UTC)
        self._elapsed = 0.0
        self._timers: list[ManualTimer] = []
        self._seq = 0

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def call_later(self, delay: float, callback: TimerCallback) -> ManualTimer:
        return self._add(ManualTimer(self._elapsed + max(delay, 0.0), callback))

    def call_every(
        self, interval: float, callback: TimerCallback, *, first_delay: float | None = None
    ) -> ManualTimer:
        if interval <= 0:
            raise ValueError("interval must be positive")
        delay = interval if first_delay is None else max(first_delay, 0.0)
        return self._add(ManualTimer(self._elapsed + delay, callback, interval=interval))

    async def advance(self, seconds: float = 0.0) -> None:
        """Run everything due up to now + seconds, then set the clock there."""
        target = self._elapsed + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._elapsed = max(self._elapsed, timer.due)
            if timer.interval is None:
                self._timers.remove(timer)
                timer.cancel()
            else:
                timer.due += timer.interval
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self._elapsed = target
        self._timers = [t for t in self._timers if not t.cancelled]

    def _add(self, timer: ManualTimer) -> ManualTimer:
        self._seq += 1
        timer.seq = self._seq
        self._timers.append(timer)
        return timer
