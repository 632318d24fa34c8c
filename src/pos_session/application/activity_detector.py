from __future__ import annotations

from collections.abc import Callable, Sequence

from pos_session.application.ports.activity_source_port import ActivitySourcePort
from pos_session.application.ports.scheduler_port import SchedulerPort, TimerCallback, TimerHandle
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)


class ActivityDetector:
    """Turns bursts of interaction events into a trailing-edge "renew" signal.

    Every raw event cancels the pending timer and schedules a new one for
    `window` seconds; `on_activity` fires once the window passes quietly.
    Events are ignored while `is_enabled()` is false.
    """

    def __init__(
        self,
        sources: Sequence[ActivitySourcePort],
        scheduler: SchedulerPort,
        *,
        window: float,
        on_activity: TimerCallback,
        is_enabled: Callable[[], bool] = lambda: True,
    ) -> None:
        self._sources = tuple(sources)
        self._scheduler = scheduler
        self._window = window
        self._on_activity = on_activity
        self._is_enabled = is_enabled
        self._unsubscribers: list[Callable[[], None]] = []
        self._pending: TimerHandle | None = None
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.cancelled

    def attach(self) -> None:
        if self._attached:
            return
        self._attached = True
        self._unsubscribers = [source.subscribe(self.record) for source in self._sources]
        self._log("attached", sources=[s.name for s in self._sources])

    def detach(self) -> None:
        if not self._attached:
            return
        self._attached = False
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        self._cancel_pending()
        self._log("detached")

    def record(self, kind: str = "manual") -> bool:
        """Feed one raw event; returns True if it (re)armed the debounce timer."""
        if not self._attached or not self._is_enabled():
            return False
        self._cancel_pending()
        self._pending = self._scheduler.call_later(self._window, self._fire)
        return True

    def _fire(self):
        self._pending = None
        if not self._attached or not self._is_enabled():
            return None
        self._log("activity")
        return self._on_activity()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "ActivityDetector", event, **fields)
