"""Tests for the event waiter."""

import asyncio
from dataclasses import dataclass

import pytest

from chatdispatch.waiter import EventWaiter


@dataclass
class Ping:
    value: int


@dataclass
class Pong:
    value: int


@pytest.mark.asyncio
async def test_action_runs_once_for_matching_event():
    waiter = EventWaiter()
    seen = []
    reg = waiter.wait_for_event(Ping, lambda e: e.value == 2, seen.append)

    assert await waiter.on_event(Ping(1)) == 0
    assert await waiter.on_event(Ping(2)) == 1
    assert await waiter.on_event(Ping(2)) == 0

    assert seen == [Ping(2)]
    assert reg.outcome == "event"
    assert not reg.active
    assert waiter.pending() == 0


@pytest.mark.asyncio
async def test_other_event_types_are_ignored():
    waiter = EventWaiter()
    seen = []
    waiter.wait_for_event(Ping, lambda e: True, seen.append)
    assert await waiter.on_event(Pong(1)) == 0
    assert seen == []
    assert waiter.pending(Ping) == 1


@pytest.mark.asyncio
async def test_timeout_action_runs_once_and_event_action_never():
    waiter = EventWaiter()
    seen = []
    timed_out = []
    reg = waiter.wait_for_event(
        Ping, lambda e: True, seen.append, timeout=0.02, timeout_action=lambda: timed_out.append(True)
    )

    await asyncio.sleep(0.06)
    assert await waiter.on_event(Ping(1)) == 0
    assert timed_out == [True]
    assert seen == []
    assert reg.outcome == "timeout"


@pytest.mark.asyncio
async def test_event_before_timeout_cancels_timer():
    waiter = EventWaiter()
    timed_out = []
    waiter.wait_for_event(
        Ping, lambda e: True, lambda e: None, timeout=0.03, timeout_action=lambda: timed_out.append(True)
    )
    await waiter.on_event(Ping(1))
    await asyncio.sleep(0.06)
    assert timed_out == []


@pytest.mark.asyncio
async def test_async_timeout_action_is_awaited():
    waiter = EventWaiter()
    done = asyncio.Event()

    async def on_timeout():
        done.set()

    waiter.wait_for_event(Ping, lambda e: True, lambda e: None, timeout=0.01, timeout_action=on_timeout)
    await asyncio.wait_for(done.wait(), timeout=1)


@pytest.mark.asyncio
async def test_cancel_runs_neither_action():
    waiter = EventWaiter()
    seen = []
    timed_out = []
    reg = waiter.wait_for_event(
        Ping, lambda e: True, seen.append, timeout=0.02, timeout_action=lambda: timed_out.append(True)
    )

    assert reg.cancel() is True
    assert reg.cancel() is False
    await waiter.on_event(Ping(1))
    await asyncio.sleep(0.05)

    assert seen == []
    assert timed_out == []
    assert reg.outcome == "cancelled"


@pytest.mark.asyncio
async def test_condition_error_skips_registration():
    waiter = EventWaiter()

    def bad_condition(event):
        raise ValueError("nope")

    reg = waiter.wait_for_event(Ping, bad_condition, lambda e: None)
    assert await waiter.on_event(Ping(1)) == 0
    assert reg.active


@pytest.mark.asyncio
async def test_action_error_is_contained():
    waiter = EventWaiter()

    async def bad_action(event):
        raise RuntimeError("boom")

    waiter.wait_for_event(Ping, lambda e: True, bad_action)
    assert await waiter.on_event(Ping(1)) == 1


@pytest.mark.asyncio
async def test_action_may_rearm_without_seeing_same_event():
    waiter = EventWaiter()
    seen = []

    def rearm(event):
        seen.append(event.value)
        waiter.wait_for_event(Ping, lambda e: True, rearm)

    waiter.wait_for_event(Ping, lambda e: True, rearm)
    await waiter.on_event(Ping(1))
    await waiter.on_event(Ping(2))
    assert seen == [1, 2]
    assert waiter.pending(Ping) == 1
