from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

ActivityCallback = Callable[[str], None]


class ActivitySourcePort(Protocol):
    """A stream of raw interaction events (pointer move, key press, click...)."""

    name: str

    def subscribe(self, callback: ActivityCallback) -> Callable[[], None]:
        """Register `callback(kind)`; returns the function that unsubscribes it."""
        ...
