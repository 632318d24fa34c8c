from __future__ import annotations
import asyncio
from datetime import timedelta

from pos_session.application.use_cases.ensure_user_session import EnsureUserSessionUseCase
from pos_session.domain.entities.identity import Identity
from pos_session.domain.entities.session import Session, SessionMetadata
from tests.unit._fakes_session import START, FakeStore, FixedClock

LIFETIME = timedelta(minutes=15)


def _uc(store, clock):
    return EnsureUserSessionUseCase(store, lifetime=LIFETIME, clock=clock)


def test_ensure_session_already_active():
    clock = FixedClock()
    store = FakeStore(clock=clock)
    row = Session.open("u1", "normal", now=START - timedelta(minutes=5), lifetime=LIFETIME)
    store.put(row)

    res = asyncio.run(_uc(store, clock).execute(Identity("u1", "normal")))
    assert res.status == "ALREADY_ACTIVE"
    assert res.session == row
    assert store.calls["create"] == 0


def test_ensure_session_creates_when_none_valid():
    clock = FixedClock()
    store = FakeStore(clock=clock)
    expired = Session.open("u1", "normal", now=START - timedelta(hours=1), lifetime=LIFETIME)
    store.put(expired)

    meta = SessionMetadata(ip_address="10.0.0.7", user_agent="till-3")
    res = asyncio.run(_uc(store, clock).execute(Identity("u1", "normal"), meta))
    assert res.status == "CREATED"
    assert res.session.expires_at == START + LIFETIME
    assert res.session.ip_address == "10.0.0.7"
    assert res.session.extension_count == 0
    assert len(store.rows("u1")) == 2


def test_revalidate_only_reports_not_found():
    clock = FixedClock()
    store = FakeStore(clock=clock)
    res = asyncio.run(_uc(store, clock).execute(Identity("u1"), create=False))
    assert res.status == "NOT_FOUND"
    assert store.calls["create"] == 0


def test_failed_read_counts_as_none_when_creating():
    clock = FixedClock()
    store = FakeStore(clock=clock)
    store.fail.add("fetch")
    uc = _uc(store, clock)
    assert asyncio.run(uc.execute(Identity("u1"))).status == "CREATED"
    assert asyncio.run(uc.execute(Identity("u1"), create=False)).status == "UNAVAILABLE"


def test_failed_create_is_error():
    clock = FixedClock()
    store = FakeStore(clock=clock)
    store.fail.add("create")
    res = asyncio.run(_uc(store, clock).execute(Identity("u1")))
    assert res.status == "ERROR"
    assert res.session is None


def test_overlapping_calls_create_a_single_row():
    async def run():
        clock = FixedClock()
        store = FakeStore(clock=clock)
        uc = _uc(store, clock)
        results = await asyncio.gather(*(uc.execute(Identity("u1")) for _ in range(3)))
        return store, results

    store, results = asyncio.run(run())
    assert sorted(r.status for r in results) == ["ALREADY_ACTIVE", "ALREADY_ACTIVE", "CREATED"]
    assert len(store.rows("u1")) == 1
