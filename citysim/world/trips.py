from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from citysim.clock import Duration, Tick


class TripMode(str, Enum):
    WALK = "walk"
    BIKE = "bike"
    TRANSIT = "transit"
    DRIVE = "drive"

    @property
    def order(self) -> int:
        return list(TripMode).index(self)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TripRequest:
    trip_id: int
    agent_id: int
    mode: TripMode
    depart: Tick
    distance_m: float
    route: Optional[str] = None
    board_stop: int = 0
    alight_stop: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trip_id": self.trip_id,
            "agent_id": self.agent_id,
            "mode": self.mode.value,
            "depart": self.depart.ticks,
            "distance_m": self.distance_m,
            "route": self.route,
            "board_stop": self.board_stop,
            "alight_stop": self.alight_stop,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TripRequest:
        return cls(
            trip_id=int(data["trip_id"]),
            agent_id=int(data["agent_id"]),
            mode=TripMode(data["mode"]),
            depart=Tick(int(data["depart"])),
            distance_m=float(data["distance_m"]),
            route=data.get("route"),
            board_stop=int(data.get("board_stop", 0)),
            alight_stop=int(data.get("alight_stop", 0)),
        )


@dataclass(frozen=True)
class TripRecord:
    """One completed trip. Emitted once by the engine and never changed."""

    agent_id: int
    mode: TripMode
    duration: Duration

    def to_dict(self) -> Dict[str, Any]:
        return {"agent_id": self.agent_id, "mode": self.mode.value, "duration": self.duration.ticks}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TripRecord:
        return cls(int(data["agent_id"]), TripMode(data["mode"]), Duration(int(data["duration"])))


@dataclass(frozen=True)
class BusSegment:
    """A bus travelling between two consecutive stops; duration covers dwell and travel."""

    route: str
    bus_id: int
    from_stop: int
    duration: Duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "bus_id": self.bus_id,
            "from_stop": self.from_stop,
            "duration": self.duration.ticks,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BusSegment:
        return cls(data["route"], int(data["bus_id"]), int(data["from_stop"]), Duration(int(data["duration"])))
