from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple

import pandas as pd

from citysim.world.trips import TripRecord

LEDGER_COLUMNS = ["agent_id", "mode", "duration"]


class TripLedger:
    """Append-only history of completed trips for one run, in completion order."""

    def __init__(self, records: Iterable[TripRecord] = ()) -> None:
        self._records: List[TripRecord] = []
        for record in records:
            self.record(record)

    def record(self, trip: TripRecord) -> None:
        if not isinstance(trip, TripRecord):
            raise TypeError(f"expected TripRecord, got {type(trip).__name__}")
        self._records.append(trip)

    def all(self) -> Tuple[TripRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TripRecord]:
        return iter(tuple(self._records))

    def to_frame(self) -> pd.DataFrame:
        """One row per trip; duration is in ticks."""
        rows = [(r.agent_id, r.mode.value, r.duration.ticks) for r in self._records]
        return pd.DataFrame(rows, columns=LEDGER_COLUMNS).astype({"agent_id": "int64", "duration": "int64"})
