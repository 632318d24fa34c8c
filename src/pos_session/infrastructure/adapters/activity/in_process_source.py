from __future__ import annotations

from collections.abc import Callable

from pos_session.application.ports.activity_source_port import ActivityCallback, ActivitySourcePort


class InProcessActivitySource(ActivitySourcePort):
    """Push-style interaction source: whoever sees user input calls emit()."""

    def __init__(self, name: str = "ui") -> None:
        self.name = name
        self._callbacks: list[ActivityCallback] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: ActivityCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, kind: str = "pointer") -> None:
        for callback in tuple(self._callbacks):
            callback(kind)
