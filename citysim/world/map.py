from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from citysim.clock import Duration, Tick
from citysim.config import deep_merge, read_yaml, validate_model
from citysim.errors import ConfigError, LoadError
from citysim.world.trips import TripMode


class BusRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    stop_spacing_m: List[float] = Field(..., min_length=1)
    first_departure: str = "05:00:00"
    last_departure: str = "22:00:00"
    headway_minutes: float = Field(15.0, gt=0)
    speed_mps: float = Field(9.0, gt=0)
    bus_lane: bool = False

    @field_validator("first_departure", "last_departure")
    @classmethod
    def check_time(cls, value: str) -> str:
        if Tick.parse(value) is None:
            raise ValueError(f"Couldn't parse time {value!r}")
        return value

    @field_validator("stop_spacing_m")
    @classmethod
    def positive_spacing(cls, value: List[float]) -> List[float]:
        if any(spacing <= 0 for spacing in value):
            raise ValueError("stop spacing must be positive")
        return value

    @property
    def n_stops(self) -> int:
        return len(self.stop_spacing_m) + 1

    @property
    def headway(self) -> Duration:
        return Duration.minutes(self.headway_minutes)

    def departures(self) -> List[Tick]:
        first = Tick.parse(self.first_departure)
        last = Tick.parse(self.last_departure)
        times = []
        at = first
        while at <= last:
            times.append(at)
            at = at + self.headway
        return times


class MapConfig(BaseModel):
    """Road network summary consumed by the engine and the spawner."""

    model_config = ConfigDict(frozen=True)

    name: str
    mode_speeds: Dict[TripMode, float]
    road_capacity: int = Field(100, gt=0)
    min_trip_distance_m: float = Field(500.0, gt=0)
    max_trip_distance_m: float = Field(6000.0, gt=0)
    access_distance_m: float = Field(300.0, ge=0)
    bus_routes: List[BusRoute] = Field(default_factory=list)
    fixes_applied: bool = False
    edits_name: Optional[str] = None

    @model_validator(mode="after")
    def check_consistency(self) -> MapConfig:
        for mode in (TripMode.WALK, TripMode.BIKE, TripMode.DRIVE):
            if self.mode_speeds.get(mode, 0) <= 0:
                raise ValueError(f"map {self.name} needs a positive {mode.value} speed")
        if self.max_trip_distance_m < self.min_trip_distance_m:
            raise ValueError("max_trip_distance_m must be >= min_trip_distance_m")
        names = [route.name for route in self.bus_routes]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate bus route names in {names}")
        return self

    def speed(self, mode: TripMode) -> float:
        return self.mode_speeds[mode]

    def route(self, name: str) -> BusRoute:
        for route in self.bus_routes:
            if route.name == name:
                return route
        raise KeyError(name)

    def route_names(self) -> List[str]:
        return [route.name for route in self.bus_routes]


class MapEdits(BaseModel):
    """User changes to a map. Applying them builds a new map value."""

    model_config = ConfigDict(frozen=True)

    name: str = "untitled edits"
    mode_speeds: Dict[TripMode, float] = Field(default_factory=dict)
    road_capacity: Optional[int] = Field(None, gt=0)
    bus_lanes: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.mode_speeds and self.road_capacity is None and not self.bus_lanes

    def apply(self, base: MapConfig) -> MapConfig:
        unknown = sorted(set(self.bus_lanes) - set(base.route_names()))
        if unknown:
            raise ConfigError(f"edits {self.name!r} add bus lanes to unknown routes on {base.name}: {unknown}")
        data = base.model_dump(mode="json")
        speeds = {mode.value: speed for mode, speed in self.mode_speeds.items()}
        data["mode_speeds"] = deep_merge(data["mode_speeds"], speeds)
        if self.road_capacity is not None:
            data["road_capacity"] = self.road_capacity
        for route in data["bus_routes"]:
            if route["name"] in self.bus_lanes:
                route["bus_lane"] = True
        data["edits_name"] = self.name
        try:
            return MapConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"edits {self.name!r} produce an invalid map: {exc}") from exc


def map_path(data_dir: str | Path, map_name: str) -> Path:
    return Path(data_dir) / "maps" / f"{map_name}.yaml"


def load_map(path: str | Path, use_map_fixes: bool = True, edits: MapEdits | None = None) -> MapConfig:
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise LoadError(path, exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise LoadError(path, f"corrupt map file: {exc}") from exc
    if not isinstance(data, dict):
        raise LoadError(path, "map file must contain a mapping")

    fixes = data.pop("fixes", None) or {}
    if use_map_fixes and fixes:
        data = _apply_fixes(data, fixes)
        data["fixes_applied"] = True
    try:
        base = MapConfig.model_validate(data)
    except ValidationError as exc:
        raise LoadError(path, str(exc)) from exc
    if edits is not None and not edits.is_empty():
        return edits.apply(base)
    return base


def _apply_fixes(data: Dict[str, Any], fixes: Dict[str, Any]) -> Dict[str, Any]:
    route_fixes = fixes.get("bus_routes", {})
    merged = deep_merge(data, {k: v for k, v in fixes.items() if k != "bus_routes"})
    if route_fixes:
        merged["bus_routes"] = [
            deep_merge(route, route_fixes.get(route.get("name"), {})) for route in merged.get("bus_routes", [])
        ]
    return merged


def load_edits(path: str | Path) -> MapEdits:
    return validate_model(MapEdits, read_yaml(path), path)
