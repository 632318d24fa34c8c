from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

# Timer callbacks may be plain functions or return an awaitable; schedulers
# run the awaitable to completion on the event loop.
TimerCallback = Callable[[], Awaitable[None] | None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class SchedulerPort(Protocol):
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """One-shot timer firing after `delay` seconds."""
        ...

    def call_every(
        self, interval: float, callback: TimerCallback, *, first_delay: float | None = None
    ) -> TimerHandle:
        """Repeating timer; the first run happens after `first_delay` (default: interval)."""
        ...
