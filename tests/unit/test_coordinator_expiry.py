from __future__ import annotations
import asyncio
from datetime import timedelta

from pos_session.application.dtos.session_timing_dto import SessionTiming
from pos_session.application.session_coordinator import CoordinatorPhase
from pos_session.domain.entities.identity import Identity
from pos_session.domain.policies.extension_policy import RESTRICTED_MESSAGE
from tests.unit._fakes_session import FAST_POLL, START, FixedClock, make_harness

EXPIRED_ROUTE = "/auth/login?error=session_expired"


def test_session_expires_and_forces_logout_with_notice():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(0)
        session = h.coordinator.state.session_data
        await h.scheduler.advance(900)
        assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
        assert h.coordinator.state.show_logout_message
        assert h.coordinator.state.session_data is None
        assert h.navigator.history == []
        await h.scheduler.advance(5)
        return h, session

    h, session = asyncio.run(run())
    assert h.navigator.history == [EXPIRED_ROUTE]
    assert not h.coordinator.state.show_logout_message
    assert h.auth.sign_out_calls == 1
    assert not h.store.get(session.id).is_valid


def test_near_expiry_shows_prompt_for_eligible_role():
    async def run():
        h = make_harness(FAST_POLL)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(840)
        return h

    h = asyncio.run(run())
    assert h.coordinator.state.show_extension_prompt
    assert h.coordinator.state.to_dict()["prompt_deadline"] == "2025-01-01T09:15:00+00:00"
    assert h.coordinator.phase is CoordinatorPhase.NEAR_EXPIRY_PROMPTED


def test_prompt_shows_with_default_poll_interval():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(839)
        assert not h.coordinator.state.show_extension_prompt
        await h.scheduler.advance(1)
        state = h.coordinator.state
        assert state.show_extension_prompt
        assert state.prompt_deadline == START + timedelta(seconds=900)
        assert h.coordinator.phase is CoordinatorPhase.NEAR_EXPIRY_PROMPTED
        await h.scheduler.advance(65)
        return h

    h = asyncio.run(run())
    assert h.navigator.history == [EXPIRED_ROUTE]


def test_extend_moves_the_warning_to_the_new_expiry():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(840)
        await h.coordinator.extend()
        assert h.coordinator.state.prompt_deadline is None
        # new expiry at 1740, warning at 1680
        await h.scheduler.advance(839)
        assert not h.coordinator.state.show_extension_prompt
        await h.scheduler.advance(1)
        assert h.coordinator.state.show_extension_prompt
        assert h.coordinator.state.prompt_deadline == START + timedelta(seconds=1740)
    asyncio.run(run())


def test_extend_from_prompt_renews_and_hides_prompt():
    async def run():
        h = make_harness(FAST_POLL)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(850)
        await h.coordinator.extend()
        state = h.coordinator.state
        assert not state.show_extension_prompt
        assert state.session_data.extension_count == 1
        assert (state.session_data.expires_at - h.scheduler.now()).total_seconds() == 900
        # the grace timer was cancelled; the session lives past the old expiry
        await h.scheduler.advance(300)
        assert h.coordinator.phase is CoordinatorPhase.ACTIVE
        return h

    h = asyncio.run(run())
    assert h.navigator.history == []


def test_ignored_prompt_ends_in_forced_logout():
    async def run():
        h = make_harness(FAST_POLL)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(905)
        return h

    h = asyncio.run(run())
    assert h.navigator.history == [EXPIRED_ROUTE]
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT


def test_grace_recheck_before_expiry_keeps_prompt():
    timing = SessionTiming(poll_interval_seconds=60, near_expiry_seconds=120, prompt_grace_seconds=30)

    async def run():
        h = make_harness(timing)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(780)
        assert h.coordinator.state.show_extension_prompt
        fetches = h.store.calls["fetch"]
        await h.scheduler.advance(30)
        # grace elapsed at 810: re-check ran, session still alive, prompt stays
        assert h.store.calls["fetch"] == fetches + 1
        assert h.coordinator.phase is CoordinatorPhase.NEAR_EXPIRY_PROMPTED
        await h.scheduler.advance(95)
        return h

    h = asyncio.run(run())
    assert h.navigator.history == [EXPIRED_ROUTE]


def test_demo_user_gets_no_prompt_and_no_extension():
    async def run():
        h = make_harness(FAST_POLL)
        h.coordinator.initialize(Identity("u1", "demo"))
        await h.scheduler.advance(840)
        assert not h.coordinator.state.show_extension_prompt
        await h.coordinator.extend()
        assert h.coordinator.state.demo_message == RESTRICTED_MESSAGE
        assert h.store.calls["extend"] == 0
        h.coordinator.dismiss_message()
        assert h.coordinator.state.demo_message is None
        await h.scheduler.advance(65)
        return h

    h = asyncio.run(run())
    assert h.navigator.history == [EXPIRED_ROUTE]


def test_activity_renews_session_once_per_burst():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(100)
        for _ in range(5):
            h.source.emit("move")
            await h.scheduler.advance(5)
        await h.scheduler.advance(30)
        return h

    h = asyncio.run(run())
    session = h.coordinator.state.session_data
    assert h.store.calls["extend"] == 1
    assert session.extension_count == 1
    # last event at t=120, quiet window of 30s
    assert (session.expires_at - session.created_at).total_seconds() == 150 + 900


def test_activity_does_not_extend_demo_sessions():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "demo"))
        await h.scheduler.advance(100)
        h.source.emit("click")
        await h.scheduler.advance(60)
        return h

    h = asyncio.run(run())
    assert h.store.calls["extend"] == 0
    assert h.coordinator.state.demo_message is None


def test_activity_after_unobserved_expiry_logs_out():
    async def run():
        wall = FixedClock()
        h = make_harness(clock=wall)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(0)
        session = h.coordinator.state.session_data
        # the host slept past expiry without any timer firing
        wall.advance(20 * 60)
        h.source.emit("click")
        await h.scheduler.advance(30)
        assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
        assert h.coordinator.state.show_logout_message
        await h.scheduler.advance(5)
        return h, session

    h, session = asyncio.run(run())
    assert h.store.calls["extend"] == 0
    assert h.store.get(session.id).extension_count == 0
    assert not h.store.get(session.id).is_valid
    assert h.navigator.history == [EXPIRED_ROUTE]


def test_store_refusing_lapsed_row_forces_logout():
    async def run():
        store_clock = FixedClock()
        h = make_harness(store_clock=store_clock)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(0)
        session = h.coordinator.state.session_data
        store_clock.advance(16 * 60)
        await h.coordinator.extend()
        return h, session

    h, session = asyncio.run(run())
    assert h.store.calls["extend"] == 1
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
    assert h.coordinator.state.demo_message is None
    assert h.store.get(session.id).extension_count == 0


def test_activity_ignored_before_session_is_bound():
    async def run():
        h = make_harness()
        h.source.emit("move")
        h.coordinator.initialize(Identity("u1", "normal"))
        assert not h.coordinator.activity.record("move")
        await h.scheduler.advance(0)
        assert h.coordinator.activity.record("move")
    asyncio.run(run())


def test_row_invalidated_elsewhere_forces_logout():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(0)
        await h.store.invalidate_session(h.coordinator.state.session_data.id)
        await h.scheduler.advance(300)
        return h

    h = asyncio.run(run())
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
    assert h.coordinator.state.show_logout_message


def test_create_failure_forces_logout():
    async def run():
        h = make_harness()
        h.store.fail.add("create")
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(5)
        return h

    h = asyncio.run(run())
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
    assert h.navigator.history == [EXPIRED_ROUTE]
    assert h.store.calls["invalidate"] == 0


def test_read_failure_keeps_bound_session():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(0)
        bound = h.coordinator.state.session_data
        h.store.fail.add("fetch")
        await h.scheduler.advance(300)
        assert h.coordinator.phase is CoordinatorPhase.ACTIVE
        assert h.coordinator.state.session_data == bound
        # without the store the bound copy still expires locally
        await h.scheduler.advance(600)
        return h

    h = asyncio.run(run())
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT


def test_extension_failure_keeps_session_and_shows_advisory():
    async def run():
        h = make_harness(FAST_POLL)
        h.coordinator.initialize(Identity("u1", "normal"))
        await h.scheduler.advance(840)
        h.store.fail.add("extend")
        bound = h.coordinator.state.session_data
        await h.coordinator.extend()
        assert h.coordinator.state.session_data == bound
        assert h.coordinator.state.demo_message
        assert h.coordinator.state.show_extension_prompt
    asyncio.run(run())


def test_overlapping_checks_never_create_two_rows():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        # hold the first read so all three checks overlap
        h.store.fetch_gate = asyncio.Event()
        tasks = [asyncio.create_task(h.coordinator.check_expiration()) for _ in range(3)]
        for _ in range(3):
            await asyncio.sleep(0)
        h.store.fetch_gate.set()
        await asyncio.gather(*tasks)
        await h.scheduler.advance(0)
        return h

    h = asyncio.run(run())
    assert len(h.store.rows("u1")) == 1
    assert h.store.calls["create"] == 1


def test_result_of_stale_check_is_dropped():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        h.store.fetch_gate = asyncio.Event()
        task = asyncio.create_task(h.coordinator.check_expiration())
        for _ in range(3):
            await asyncio.sleep(0)
        h.coordinator.teardown()
        h.store.fetch_gate.set()
        await task
        return h

    h = asyncio.run(run())
    assert h.coordinator.state.session_data is None
    assert h.coordinator.phase is CoordinatorPhase.UNINITIALIZED
    assert h.navigator.history == []


def test_logout_during_pending_check_wins():
    async def run():
        h = make_harness()
        h.coordinator.initialize(Identity("u1", "normal"))
        h.store.fetch_gate = asyncio.Event()
        task = asyncio.create_task(h.coordinator.check_expiration())
        for _ in range(3):
            await asyncio.sleep(0)
        await h.coordinator.logout()
        h.store.fetch_gate.set()
        await task
        return h

    h = asyncio.run(run())
    assert h.coordinator.phase is CoordinatorPhase.LOGGED_OUT
    assert h.coordinator.state.session_data is None
    assert h.coordinator.state.show_logout_message
