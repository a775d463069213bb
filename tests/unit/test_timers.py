from __future__ import annotations

import asyncio

import pytest

from chat_realtime.services.timers import KeyedTimers, PeriodicTask


@pytest.mark.asyncio
async def test_timer_fires_once():
    fired = []
    timers = KeyedTimers("test")
    timers.schedule("k", 0.01, lambda: fired.append("k"))
    assert timers.pending("k")

    await asyncio.sleep(0.05)

    assert fired == ["k"]
    assert not timers.pending("k")


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    fired = []
    timers = KeyedTimers("test")
    timers.schedule("k", 0.01, lambda: fired.append("k"))

    assert timers.cancel("k") is True
    assert timers.cancel("k") is False
    await asyncio.sleep(0.05)

    assert fired == []


@pytest.mark.asyncio
async def test_reschedule_replaces_pending():
    fired = []
    timers = KeyedTimers("test")
    timers.schedule("k", 0.01, lambda: fired.append(1))
    timers.schedule("k", 0.02, lambda: fired.append(2))

    await asyncio.sleep(0.06)

    assert fired == [2]


@pytest.mark.asyncio
async def test_async_callback_and_failure_are_contained():
    fired = []

    async def ok():
        fired.append("ok")

    def boom():
        raise RuntimeError("boom")

    timers = KeyedTimers("test")
    timers.schedule("bad", 0.01, boom)
    timers.schedule("good", 0.01, ok)
    await asyncio.sleep(0.05)

    assert fired == ["ok"]


@pytest.mark.asyncio
async def test_periodic_task_runs_until_stopped():
    calls = []
    task = PeriodicTask("tick", 0.01, lambda: calls.append(1))
    task.start()
    assert task.running
    await asyncio.sleep(0.05)
    await task.stop()

    assert not task.running
    seen = len(calls)
    assert seen >= 1
    await asyncio.sleep(0.03)
    assert len(calls) == seen
