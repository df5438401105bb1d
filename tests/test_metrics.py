import itertools

import pytest

from citysim.clock import Duration
from citysim.metrics.ledger import TripLedger
from citysim.metrics.stats import DurationHistogram, DurationStats, bus_route_stats, from_ledger
from citysim.world.trips import BusSegment, TripMode, TripRecord


def _records():
    return [
        TripRecord(0, TripMode.BIKE, Duration(10)),
        TripRecord(1, TripMode.BIKE, Duration(40)),
        TripRecord(2, TripMode.DRIVE, Duration(300)),
        TripRecord(3, TripMode.BIKE, Duration(20)),
        TripRecord(4, TripMode.BIKE, Duration(30)),
    ]


def test_histogram_stats():
    histogram = DurationHistogram()
    histogram.extend(Duration(t) for t in [10, 20, 30, 40])
    stats = histogram.to_stats()
    assert stats.count == 4
    assert stats.min == Duration(10)
    assert stats.max == Duration(40)
    assert stats.mean == Duration(25)
    assert stats.p50 == Duration(20)
    assert stats.p99 == Duration(40)


def test_empty_histogram_has_no_stats():
    with pytest.raises(ValueError):
        DurationHistogram().to_stats()


def test_stats_ignore_completion_order():
    expected = from_ledger(TripLedger(_records()))
    for order in itertools.permutations(_records()):
        assert from_ledger(TripLedger(order)) == expected
    assert list(expected) == [TripMode.BIKE, TripMode.DRIVE]
    assert expected[TripMode.DRIVE].count == 1


def test_empty_ledger_gives_empty_stats():
    assert from_ledger(TripLedger()) == {}
    assert len(TripLedger().to_frame()) == 0


def test_ledger_is_append_only_history():
    ledger = TripLedger()
    for record in _records():
        ledger.record(record)
    assert ledger.all() == tuple(_records())
    with pytest.raises(TypeError):
        ledger.record(("not", "a", "record"))
    frame = ledger.to_frame()
    assert list(frame.columns) == ["agent_id", "mode", "duration"]
    assert frame["duration"].sum() == 400


def test_stats_dict_round_trip_in_seconds():
    stats = DurationStats(3, *(Duration.seconds(s) for s in [1.5, 2, 3, 4, 5, 6.1]))
    data = stats.to_dict()
    assert data["count"] == 3
    assert data["min"] == 1.5
    assert DurationStats.from_dict(data) == stats
    with pytest.raises(ValueError):
        DurationStats.from_dict({"count": 1})


def test_bus_route_stats_group_by_route():
    segments = [
        BusSegment("48", 0, 0, Duration.seconds(60)),
        BusSegment("48", 1, 0, Duration.seconds(80)),
        BusSegment("8", 2, 0, Duration.seconds(30)),
    ]
    stats = bus_route_stats(segments)
    assert list(stats) == ["48", "8"]
    assert stats["48"].mean == Duration.seconds(70)
    assert bus_route_stats([]) == {}
