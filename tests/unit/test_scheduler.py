from __future__ import annotations
import asyncio

from pos_session.infrastructure.adapters.scheduling.asyncio_scheduler import AsyncioScheduler
from pos_session.infrastructure.adapters.scheduling.manual_scheduler import ManualScheduler
from tests.unit._fakes_session import START


def test_manual_scheduler_runs_due_timers_in_order():
    async def run():
        s = ManualScheduler(START)
        calls = []
        s.call_later(20, lambda: calls.append(("b", s.elapsed)))
        s.call_later(10, lambda: calls.append(("a", s.elapsed)))
        s.call_every(15, lambda: calls.append(("tick", s.elapsed)), first_delay=0)
        await s.advance(31)
        assert calls == [("tick", 0), ("a", 10), ("tick", 15), ("b", 20), ("tick", 30)]
        assert s.elapsed == 31
        assert (s.now() - START).total_seconds() == 31
    asyncio.run(run())


def test_manual_scheduler_cancel_and_awaitable_callbacks():
    async def run():
        s = ManualScheduler(START)
        calls = []

        async def tick():
            calls.append(s.elapsed)

        handle = s.call_every(10, tick)
        await s.advance(25)
        handle.cancel()
        await s.advance(50)
        assert calls == [10, 20]
        assert handle.cancelled and s.pending == 0
    asyncio.run(run())


def test_timer_scheduled_from_callback_fires_in_same_advance():
    async def run():
        s = ManualScheduler(START)
        calls = []
        s.call_later(5, lambda: s.call_later(5, lambda: calls.append(s.elapsed)))
        await s.advance(10)
        assert calls == [10]
    asyncio.run(run())


def test_asyncio_scheduler_runs_sync_and_async_callbacks():
    async def run():
        s = AsyncioScheduler()
        calls = []

        async def work():
            calls.append("async")

        s.call_later(0.01, lambda: calls.append("sync"))
        s.call_later(0.01, work)
        cancelled = s.call_later(0.01, lambda: calls.append("never"))
        cancelled.cancel()
        await asyncio.sleep(0.05)
        await s.drain()
        assert sorted(calls) == ["async", "sync"]
    asyncio.run(run())


def test_asyncio_scheduler_repeats_and_survives_failures():
    async def run():
        s = AsyncioScheduler()
        calls = []

        async def flaky():
            calls.append(1)
            raise RuntimeError("boom")

        handle = s.call_every(0.01, flaky, first_delay=0)
        await asyncio.sleep(0.055)
        handle.cancel()
        await s.drain()
        count = len(calls)
        assert count >= 3
        await asyncio.sleep(0.03)
        assert len(calls) == count
    asyncio.run(run())
