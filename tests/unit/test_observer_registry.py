from __future__ import annotations

from pos_session.application.dtos.coordinator_state_dto import CoordinatorState
from pos_session.application.observer_registry import ObserverRegistry


def test_publish_reaches_every_observer_once():
    reg = ObserverRegistry()
    a, b = [], []
    reg.subscribe(a.append)
    reg.subscribe(b.append)
    reg.subscribe(a.append)  # same callable twice counts once
    state = CoordinatorState(show_extension_prompt=True)
    reg.publish(state)
    assert a == [state] and b == [state]
    assert len(reg) == 2


def test_unsubscribe_stops_delivery():
    reg = ObserverRegistry()
    seen = []
    unsubscribe = reg.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    reg.publish(CoordinatorState())
    assert seen == []
    assert seen.append not in reg


def test_failing_observer_does_not_starve_others():
    reg = ObserverRegistry()
    seen = []

    def broken(state):
        raise RuntimeError("ui gone")

    reg.subscribe(broken)
    reg.subscribe(seen.append)
    reg.publish(CoordinatorState())
    assert len(seen) == 1


def test_observer_may_unsubscribe_during_publish():
    reg = ObserverRegistry()
    seen = []

    def once(state):
        seen.append(state)
        reg.unsubscribe(once)

    reg.subscribe(once)
    reg.publish(CoordinatorState())
    reg.publish(CoordinatorState())
    assert len(seen) == 1
