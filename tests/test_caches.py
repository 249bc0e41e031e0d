from __future__ import annotations

from relay.caches import EMPTY, Snapshot, SnapshotCache


def test_latest_on_empty_cache_is_empty_sentinel():
    cache = SnapshotCache("selection")
    result = cache.latest()
    assert result is EMPTY
    assert not result
    assert not isinstance(result, Snapshot)
    assert cache.all() == []


def test_latest_picks_max_timestamp_and_falls_back_after_evict():
    cache = SnapshotCache("selection")
    cache.store("A", {"selection": [{"id": "1:1"}]}, timestamp=5)
    cache.store("B", {"selection": [{"id": "2:2"}]}, timestamp=10)

    assert cache.latest().connection_id == "B"
    assert cache.evict("B") is True
    assert cache.latest().connection_id == "A"
    assert cache.evict("B") is False


def test_store_overwrites_previous_snapshot_for_connection():
    cache = SnapshotCache("variables")
    cache.store("A", {"variables": [1, 2, 3]}, timestamp=1)
    cache.store("A", {"variables": [4]}, timestamp=2)

    assert len(cache) == 1
    snap = cache.get("A")
    assert snap.payload == {"variables": [4]}
    assert snap.count == 1
    assert snap.timestamp == 2


def test_all_is_newest_first():
    cache = SnapshotCache("selection")
    cache.store("A", [], timestamp=5)
    cache.store("B", [], timestamp=30)
    cache.store("C", [], timestamp=10)
    assert [s.connection_id for s in cache.all()] == ["B", "C", "A"]


def test_store_uses_clock_and_infers_count():
    ticks = iter([100, 200])
    cache = SnapshotCache("selection", clock=lambda: next(ticks))
    first = cache.store("A", {"nodes": [{}, {}]})
    second = cache.store("B", [{}, {}, {}], count=7)

    assert (first.timestamp, first.count) == (100, 2)
    assert (second.timestamp, second.count) == (200, 7)
    assert cache.latest() is second


def test_snapshot_to_dict():
    snap = SnapshotCache("selection").store("conn-1", {"selection": []}, timestamp=9)
    assert snap.to_dict() == {"clientId": "conn-1", "timestamp": 9, "count": 0, "data": {"selection": []}}
