from __future__ import annotations

import asyncio
import json

from relay.caches import SnapshotCache
from relay.correlation import CorrelationTable
from relay.dispatcher import Dispatcher
from relay.errors import RemoteRejectedError
from relay.registry import ConnectionRegistry


def setup(make_socket, on_analysis=None):
    pending = CorrelationTable()
    selection, variables = SnapshotCache("selection"), SnapshotCache("variables")
    dispatcher = Dispatcher(pending, selection, variables, on_analysis=on_analysis)
    sock = make_socket()
    conn = ConnectionRegistry().register(sock)
    return dispatcher, pending, selection, variables, conn, sock


def test_ping_gets_pong_and_nothing_else(make_socket):
    dispatcher, pending, selection, variables, conn, sock = setup(make_socket)
    kind = asyncio.run(dispatcher.dispatch(conn, '{"type": "ping"}'))
    assert kind == "ping"
    assert sock.frames() == [{"type": "pong"}]
    assert len(selection) == 0 and len(variables) == 0


def test_malformed_frames_are_dropped(make_socket, caplog):
    dispatcher, _, selection, _, conn, sock = setup(make_socket)

    async def scenario():
        return [
            await dispatcher.dispatch(conn, "{not json"),
            await dispatcher.dispatch(conn, "[1, 2]"),
            await dispatcher.dispatch(conn, b"\xff\xfe"),
        ]

    assert asyncio.run(scenario()) == [None, None, None]
    assert sock.sent == []
    assert "malformed message" in caplog.text


def test_unknown_types_are_ignored(make_socket):
    dispatcher, _, _, _, conn, sock = setup(make_socket)
    assert asyncio.run(dispatcher.dispatch(conn, '{"type": "hello-from-the-future"}')) is None
    assert asyncio.run(dispatcher.dispatch(conn, '{"noType": true}')) is None
    assert sock.sent == []


def test_binary_frames_are_decoded(make_socket):
    dispatcher, _, _, _, conn, sock = setup(make_socket)
    assert asyncio.run(dispatcher.dispatch(conn, b'{"type": "ping"}')) == "ping"
    assert sock.last() == {"type": "pong"}


def test_selection_report_is_cached_under_sender(make_socket):
    dispatcher, _, selection, _, conn, _ = setup(make_socket)
    report = {"type": "selection", "selection": [{"id": "1:1"}, {"id": "1:2"}], "page": "Home"}
    asyncio.run(dispatcher.dispatch(conn, json.dumps(report)))

    snap = selection.get(conn.id)
    assert snap.payload == {"selection": [{"id": "1:1"}, {"id": "1:2"}], "page": "Home"}
    assert snap.count == 2


def test_selection_with_request_id_resolves_with_full_report(make_socket):
    dispatcher, pending, selection, _, conn, _ = setup(make_socket)

    async def scenario():
        got = []
        rid = pending.create(got.append, got.append, timeout=5)
        report = {"type": "selection", "requestId": rid, "selection": [], "count": 0}
        await dispatcher.dispatch(conn, json.dumps(report))
        return got, report

    got, report = asyncio.run(scenario())
    assert got == [report]
    assert len(pending) == 0
    assert conn.id in selection


def test_operation_result_without_or_with_unknown_id_is_dropped(make_socket):
    dispatcher, pending, _, _, conn, _ = setup(make_socket)

    async def scenario():
        got = []
        rid = pending.create(got.append, got.append, timeout=5)
        await dispatcher.dispatch(conn, '{"type": "operation-result", "success": true}')
        await dispatcher.dispatch(conn, '{"type": "operation-result", "requestId": "req_0_gone", "success": true}')
        still = rid in pending
        pending.discard(rid)
        return got, still

    got, still = asyncio.run(scenario())
    assert got == []
    assert still


def test_non_string_request_ids_are_treated_as_absent(make_socket):
    dispatcher, pending, selection, _, conn, _ = setup(make_socket)

    async def scenario():
        got = []
        rid = pending.create(got.append, got.append, timeout=5)
        kinds = [
            await dispatcher.dispatch(conn, '{"type": "operation-result", "requestId": ["x"], "success": true}'),
            await dispatcher.dispatch(conn, '{"type": "selection", "requestId": {"id": 1}, "selection": [{"id": "1:1"}]}'),
        ]
        still = rid in pending
        pending.discard(rid)
        return got, still, kinds

    got, still, kinds = asyncio.run(scenario())
    assert kinds == ["operation-result", "selection"]
    assert got == [] and still
    assert selection.get(conn.id).count == 1


def test_operation_result_failure_rejects(make_socket):
    dispatcher, pending, _, _, conn, _ = setup(make_socket)

    async def scenario():
        failures = []
        rid = pending.create(lambda v: None, failures.append, timeout=5)
        await dispatcher.dispatch(conn, json.dumps(
            {"type": "operation-result", "requestId": rid, "success": False, "error": "Locked layer"}
        ))
        return failures, rid

    failures, rid = asyncio.run(scenario())
    assert len(failures) == 1
    assert isinstance(failures[0], RemoteRejectedError)
    assert str(failures[0]) == "Locked layer"
    assert failures[0].request_id == rid


def test_variables_are_cached_and_never_correlate(make_socket):
    dispatcher, pending, _, variables, conn, _ = setup(make_socket)

    async def scenario():
        got = []
        rid = pending.create(got.append, got.append, timeout=5)
        await dispatcher.dispatch(conn, json.dumps(
            {"type": "variables", "requestId": rid, "variables": [{"name": "color/primary"}]}
        ))
        still = rid in pending
        pending.discard(rid)
        return got, still

    got, still = asyncio.run(scenario())
    assert got == [] and still
    assert variables.get(conn.id).count == 1


def test_analyze_is_handed_to_companion(make_socket):
    seen = []

    async def on_analysis(conn, message):
        seen.append((conn.id, message["nodes"]))

    dispatcher, _, _, _, conn, _ = setup(make_socket, on_analysis=on_analysis)
    asyncio.run(dispatcher.dispatch(conn, '{"type": "analyze", "nodes": [{"id": "1:1"}]}'))
    assert seen == [(conn.id, [{"id": "1:1"}])]


def test_analyze_without_companion_is_ignored(make_socket):
    dispatcher, _, _, _, conn, sock = setup(make_socket)
    assert asyncio.run(dispatcher.dispatch(conn, '{"type": "analyze"}')) == "analyze"
    assert sock.sent == []
