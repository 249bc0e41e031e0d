from __future__ import annotations

import asyncio

import pytest

from relay.correlation import CorrelationTable, new_request_id
from relay.errors import RelayTimeoutError, RemoteRejectedError


class Recorder:
    def __init__(self) -> None:
        self.successes = []
        self.failures = []

    def ok(self, value):
        self.successes.append(value)

    def fail(self, exc):
        self.failures.append(exc)


def test_request_ids_are_unique_and_time_prefixed():
    ids = {new_request_id() for _ in range(5000)}
    assert len(ids) == 5000
    sample = next(iter(ids))
    prefix, clock, suffix = sample.split("_")
    assert prefix == "req"
    int(clock, 16)
    assert len(suffix) == 24


def test_resolve_invokes_success_exactly_once():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        rid = table.create(rec.ok, rec.fail, timeout=5)
        assert rid in table
        assert table.resolve(rid, "first") is True
        assert table.resolve(rid, "second") is False
        assert table.reject(rid, RemoteRejectedError("late")) is False
        return table, rec

    table, rec = asyncio.run(scenario())
    assert rec.successes == ["first"]
    assert rec.failures == []
    assert len(table) == 0


def test_reject_invokes_failure_and_removes_entry():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        rid = table.create(rec.ok, rec.fail, timeout=5)
        err = RemoteRejectedError("Node not found", rid)
        assert table.reject(rid, err) is True
        assert table.resolve(rid, "too late") is False
        return table, rec, err

    table, rec, err = asyncio.run(scenario())
    assert rec.failures == [err]
    assert rec.successes == []
    assert len(table) == 0


def test_unknown_or_empty_ids_are_ignored():
    async def scenario():
        table = CorrelationTable()
        return (
            table.resolve("req_0_nothing", 1),
            table.reject("req_0_nothing", RemoteRejectedError("x")),
            table.resolve(None, 1),
            table.discard(""),
        )

    assert asyncio.run(scenario()) == (False, False, False, False)


def test_timer_rejects_with_timeout_reason():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        rid = table.create(rec.ok, rec.fail, timeout=0.01)
        await asyncio.sleep(0.05)
        return table, rec, rid

    table, rec, rid = asyncio.run(scenario())
    assert len(rec.failures) == 1
    exc = rec.failures[0]
    assert isinstance(exc, RelayTimeoutError)
    assert exc.reason == "timeout"
    assert exc.request_id == rid
    assert rid not in table


def test_resolution_cancels_timer():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        rid = table.create(rec.ok, rec.fail, timeout=0.02)
        entry = table._pending[rid]
        table.resolve(rid, "done")
        await asyncio.sleep(0.05)
        return rec, entry

    rec, entry = asyncio.run(scenario())
    assert rec.successes == ["done"]
    assert rec.failures == []
    assert entry.timer.cancelled()


def test_discard_drops_entry_without_callbacks():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        rid = table.create(rec.ok, rec.fail, timeout=0.01)
        assert table.discard(rid) is True
        await asyncio.sleep(0.03)
        return table, rec

    table, rec = asyncio.run(scenario())
    assert len(table) == 0
    assert rec.successes == [] and rec.failures == []


def test_many_outstanding_entries_have_independent_timers():
    async def scenario():
        table = CorrelationTable()
        rec = Recorder()
        fast = table.create(rec.ok, rec.fail, timeout=0.01)
        slow = table.create(rec.ok, rec.fail, timeout=5)
        await asyncio.sleep(0.05)
        still_pending = slow in table
        table.resolve(slow, "slow reply")
        return rec, fast, still_pending

    rec, fast, still_pending = asyncio.run(scenario())
    assert still_pending
    assert [e.request_id for e in rec.failures] == [fast]
    assert rec.successes == ["slow reply"]


def test_create_outside_event_loop_needs_a_loop():
    table = CorrelationTable()
    with pytest.raises(RuntimeError):
        table.create(lambda v: None, lambda e: None, timeout=1)
