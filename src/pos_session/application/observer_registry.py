from __future__ import annotations

from collections.abc import Callable

from pos_session.application.dtos.coordinator_state_dto import CoordinatorState
from pos_session.application.ports.notification_port import NotificationPort, StateObserver
from pos_session.infrastructure import metrics
from pos_session.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class ObserverRegistry(NotificationPort):
    """Set of state observers. Delivery order is unspecified.

    publish() iterates over a snapshot, so observers may subscribe or
    unsubscribe (themselves or others) while a notification is in progress.
    """

    def __init__(self) -> None:
        self._observers: set[StateObserver] = set()

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer: object) -> bool:
        return observer in self._observers

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        self._observers.add(observer)
        metrics.observers.set(len(self._observers))
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: StateObserver) -> None:
        self._observers.discard(observer)
        metrics.observers.set(len(self._observers))

    def clear(self) -> None:
        self._observers.clear()
        metrics.observers.set(0)

    def publish(self, state: CoordinatorState) -> None:
        for observer in tuple(self._observers):
            try:
                observer(state)
            except Exception:
                # one broken UI surface must not starve the others
                logger.exception("observer %r failed", observer)
