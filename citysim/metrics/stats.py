from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

import numpy as np

from citysim.clock import Duration
from citysim.metrics.ledger import TripLedger
from citysim.world.trips import BusSegment, TripMode

STAT_FIELDS = ["count", "min", "mean", "p50", "p90", "p99", "max"]


@dataclass(frozen=True)
class DurationStats:
    count: int
    min: Duration
    mean: Duration
    p50: Duration
    p90: Duration
    p99: Duration
    max: Duration

    def to_dict(self) -> Dict[str, float]:
        """Counts stay integral; every duration is written in seconds."""
        out: Dict[str, float] = {"count": self.count}
        for name in STAT_FIELDS[1:]:
            out[name] = getattr(self, name).inner_seconds()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> DurationStats:
        missing = [name for name in STAT_FIELDS if name not in data]
        if missing:
            raise ValueError(f"duration stats missing {missing}")
        return cls(int(data["count"]), *(Duration.seconds(float(data[name])) for name in STAT_FIELDS[1:]))

    def describe(self) -> str:
        return (
            f"{self.count} trips, mean {self.mean}, 50%ile {self.p50}, "
            f"90%ile {self.p90}, 99%ile {self.p99}, max {self.max}"
        )


class DurationHistogram:
    """Multiset of observed durations. Insertion order never affects the stats."""

    def __init__(self) -> None:
        self._counts: Counter[int] = Counter()

    def add(self, duration: Duration) -> None:
        self._counts[duration.ticks] += 1

    def extend(self, durations: Iterable[Duration]) -> None:
        for duration in durations:
            self.add(duration)

    def merge(self, other: DurationHistogram) -> DurationHistogram:
        merged = DurationHistogram()
        merged._counts = self._counts + other._counts
        return merged

    def count(self) -> int:
        return sum(self._counts.values())

    def to_stats(self) -> DurationStats:
        count = self.count()
        if count == 0:
            raise ValueError("can't summarize an empty histogram")
        keys = np.array(sorted(self._counts), dtype=np.int64)
        values = np.repeat(keys, [self._counts[k] for k in keys.tolist()])
        p50, p90, p99 = np.percentile(values, [50, 90, 99], method="inverted_cdf")
        total = sum(ticks * n for ticks, n in self._counts.items())
        mean = (2 * total + count) // (2 * count)
        return DurationStats(
            count=count,
            min=Duration(int(keys[0])),
            mean=Duration(int(mean)),
            p50=Duration(int(p50)),
            p90=Duration(int(p90)),
            p99=Duration(int(p99)),
            max=Duration(int(keys[-1])),
        )


def from_ledger(ledger: TripLedger) -> Dict[TripMode, DurationStats]:
    """Per-mode stats. Modes with no finished trips are left out; an empty ledger gives {}."""
    frame = ledger.to_frame()
    if frame.empty:
        return {}
    stats: Dict[TripMode, DurationStats] = {}
    for mode_name, group in frame.groupby("mode", sort=True):
        histogram = DurationHistogram()
        histogram.extend(Duration(int(ticks)) for ticks in group["duration"])
        stats[TripMode(mode_name)] = histogram.to_stats()
    return dict(sorted(stats.items(), key=lambda item: item[0].order))


def bus_route_stats(segments: Sequence[BusSegment]) -> Dict[str, DurationStats]:
    """Stop-to-stop times per route."""
    histograms: Dict[str, DurationHistogram] = {}
    for segment in segments:
        histograms.setdefault(segment.route, DurationHistogram()).add(segment.duration)
    return {route: histograms[route].to_stats() for route in sorted(histograms)}


@dataclass(frozen=True)
class RunStatistics:
    trips: Dict[TripMode, DurationStats]
    bus_routes: Dict[str, DurationStats]
    unfinished_trips: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "trips": {mode.value: stats.to_dict() for mode, stats in self.trips.items()},
            "bus_routes": {route: stats.to_dict() for route, stats in self.bus_routes.items()},
            "unfinished_trips": self.unfinished_trips,
        }


def summarize_run(ledger: TripLedger, engine) -> RunStatistics:
    return RunStatistics(
        trips=from_ledger(ledger),
        bus_routes=bus_route_stats(engine.bus_segments()),
        unfinished_trips=engine.unfinished_trips(),
    )
