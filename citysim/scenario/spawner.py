from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from citysim.clock import Tick
from citysim.errors import ConfigError, LoadError
from citysim.rng import RandomStream
from citysim.world.map import MapConfig
from citysim.world.trips import TripMode, TripRequest


class SpawnGroup(BaseModel):
    mode: TripMode
    count: int = Field(..., ge=0)
    depart_start: str = "06:00:00"
    depart_end: str = "20:00:00"
    min_distance_m: Optional[float] = Field(None, gt=0)
    max_distance_m: Optional[float] = Field(None, gt=0)

    @field_validator("depart_start", "depart_end")
    @classmethod
    def check_time(cls, value: str) -> str:
        if Tick.parse(value) is None:
            raise ValueError(f"Couldn't parse time {value!r}")
        return value

    @model_validator(mode="after")
    def check_window(self) -> SpawnGroup:
        start, end = self.window()
        if end < start:
            raise ValueError(f"depart_end {self.depart_end} is before depart_start {self.depart_start}")
        if self.min_distance_m is not None and self.max_distance_m is not None:
            if self.max_distance_m < self.min_distance_m:
                raise ValueError(f"max_distance_m {self.max_distance_m} is below min_distance_m {self.min_distance_m}")
        return self

    def window(self) -> tuple[Tick, Tick]:
        return Tick.parse(self.depart_start), Tick.parse(self.depart_end)


class Scenario(BaseModel):
    """Named, reproducible description of who travels when and how."""

    name: str
    map_name: str
    groups: List[SpawnGroup] = Field(default_factory=list)

    def total_trips(self) -> int:
        return sum(group.count for group in self.groups)


DEMAND_PROFILES: Dict[str, Dict[TripMode, int]] = {
    "small": {TripMode.DRIVE: 60, TripMode.BIKE: 20, TripMode.WALK: 20, TripMode.TRANSIT: 20},
    "big": {TripMode.DRIVE: 1200, TripMode.BIKE: 300, TripMode.WALK: 300, TripMode.TRANSIT: 300},
}


def demand_profile(map_cfg: MapConfig, profile: str) -> Scenario:
    if profile not in DEMAND_PROFILES:
        raise ConfigError(f"Unknown demand profile {profile!r}; choose from {sorted(DEMAND_PROFILES)}")
    groups = [SpawnGroup(mode=mode, count=count) for mode, count in DEMAND_PROFILES[profile].items()]
    return Scenario(name=f"{profile}_spawn", map_name=map_cfg.name, groups=groups)


class ScenarioSpawner:
    """Turns a scenario into trip requests, drawing only from the stream it is handed."""

    def __init__(self, map_cfg: MapConfig) -> None:
        self.map = map_cfg

    def spawn(self, scenario: Scenario, rng: RandomStream) -> List[TripRequest]:
        if scenario.map_name != self.map.name:
            raise ConfigError(f"Scenario {scenario.name} is for map {scenario.map_name}, not {self.map.name}")
        trips: List[TripRequest] = []
        for group in scenario.groups:
            if group.mode is TripMode.TRANSIT and not self.map.bus_routes:
                logging.warning("Map %s has no bus routes; skipping %d transit trips", self.map.name, group.count)
                continue
            start, end = group.window()
            low = group.min_distance_m or self.map.min_trip_distance_m
            high = group.max_distance_m or self.map.max_trip_distance_m
            if high < low:
                raise ConfigError(
                    f"Scenario {scenario.name}: {group.mode.value} distances {low}-{high}m "
                    f"are inverted on {self.map.name}"
                )
            for _ in range(group.count):
                trip_id = len(trips)
                depart = Tick(rng.integers(start.ticks, end.ticks + 1))
                if group.mode is TripMode.TRANSIT:
                    trips.append(self._transit_trip(trip_id, depart, rng))
                else:
                    distance = rng.uniform(low, high)
                    trips.append(TripRequest(trip_id, trip_id, group.mode, depart, distance))
        logging.info("Spawned %d trips for scenario %s on %s", len(trips), scenario.name, self.map.name)
        return trips

    def _transit_trip(self, trip_id: int, depart: Tick, rng: RandomStream) -> TripRequest:
        route = self.map.bus_routes[rng.choice(len(self.map.bus_routes))]
        board = rng.integers(0, route.n_stops - 1)
        alight = rng.integers(board + 1, route.n_stops)
        distance = float(sum(route.stop_spacing_m[board:alight]))
        return TripRequest(trip_id, trip_id, TripMode.TRANSIT, depart, distance, route.name, board, alight)


def scenario_path(data_dir: str | Path, map_name: str, scenario_name: str) -> Path:
    return Path(data_dir) / "scenarios" / map_name / f"{scenario_name}.yaml"


def load_scenario(path: str | Path) -> Scenario:
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise LoadError(path, exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise LoadError(path, f"corrupt scenario file: {exc}") from exc
    try:
        return Scenario.model_validate(data)
    except ValidationError as exc:
        raise LoadError(path, str(exc)) from exc
