from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pos_session.application.dtos.coordinator_state_dto import CoordinatorState

StateObserver = Callable[["CoordinatorState"], None]


class NotificationPort(Protocol):
    """Publish/subscribe channel for coordinator state snapshots."""

    def subscribe(self, observer: StateObserver) -> Callable[[], None]: ...
    def unsubscribe(self, observer: StateObserver) -> None: ...
    def publish(self, state: "CoordinatorState") -> None: ...
