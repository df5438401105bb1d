from __future__ import annotations

from typing import Any, Dict, Protocol, Sequence, runtime_checkable

from citysim.clock import Duration, Tick
from citysim.world.trips import BusSegment, TripRecord


@runtime_checkable
class SimulationEngine(Protocol):
    """What the driver, savestates and statistics need from a micro-simulation."""

    time: Tick

    @property
    def map_name(self) -> str: ...

    def step(self, duration: Duration) -> None:
        """Advance by duration, fully processing everything scheduled up to the new time."""

    def is_done(self) -> bool:
        """True once nothing else is scheduled."""

    def finished_trips(self) -> Sequence[TripRecord]: ...

    def bus_segments(self) -> Sequence[BusSegment]: ...

    def unfinished_trips(self) -> int: ...

    def to_state(self) -> Dict[str, Any]: ...
