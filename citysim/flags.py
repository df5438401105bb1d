from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from citysim.clock import Duration, Tick
from citysim.config import EngineConfig
from citysim.engine.traffic import TrafficEngine
from citysim.errors import ConfigError, LoadError
from citysim.io.savestate import load_savestate
from citysim.rng import RandomStream
from citysim.scenario.spawner import ScenarioSpawner, demand_profile, load_scenario
from citysim.world.map import MapConfig, MapEdits, load_map, map_path


class SimOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_name: str = "headless"
    savestate_every: Optional[str] = None

    @field_validator("savestate_every")
    @classmethod
    def check_interval(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parsed = Tick.parse(value)
            if parsed is None or parsed.ticks == 0:
                raise ValueError(f"Couldn't parse savestate interval {value!r}")
        return value

    def savestate_interval(self) -> Optional[Duration]:
        if self.savestate_every is None:
            return None
        return Tick.parse(self.savestate_every) - Tick.zero()


class SimFlags(BaseModel):
    """Everything needed to start one run. Read once at startup, never changed."""

    model_config = ConfigDict(frozen=True)

    load: Path
    use_map_fixes: bool = True
    rng_seed: Optional[int] = Field(None, ge=0)
    opts: SimOptions = SimOptions()

    def make_rng(self) -> RandomStream:
        """RNG for scored runs; refuses to run without a seed."""
        if self.rng_seed is None:
            raise ConfigError(f"{self.opts.run_name} needs an explicit rng seed to be reproducible")
        return RandomStream.seeded(self.rng_seed)

    def make_exploratory_rng(self) -> RandomStream:
        if self.rng_seed is None:
            return RandomStream.from_entropy()
        return RandomStream.seeded(self.rng_seed)

    def load_run(
        self,
        *,
        data_dir: str | Path = Path("data"),
        config: Optional[EngineConfig] = None,
        edits: Optional[MapEdits] = None,
        spawn_profile: Optional[str] = None,
        scored: bool = False,
    ) -> LoadedRun:
        """Build a fresh engine from a map, a scenario or a savestate.

        Maps get the `spawn_profile` demand (or none); scenarios bring their own
        demand; savestates resume exactly where they were written.
        """
        if self.load.suffix == ".json":
            if edits is not None and not edits.is_empty():
                raise ConfigError("Map edits can't be applied to a savestate")
            state = load_savestate(self.load)
            return LoadedRun(state.engine.map, state.engine, state.scenario_name, rng=None, from_savestate=True)

        rng = self.make_rng() if scored else self.make_exploratory_rng()
        if _is_scenario(self.load):
            scenario = load_scenario(self.load)
            map_cfg = load_map(map_path(data_dir, scenario.map_name), self.use_map_fixes, edits)
        else:
            map_cfg = load_map(self.load, self.use_map_fixes, edits)
            if spawn_profile is None:
                scenario = None
            else:
                scenario = demand_profile(map_cfg, spawn_profile)

        trips = []
        if scenario is not None:
            trips = ScenarioSpawner(map_cfg).spawn(scenario, rng.child("spawner"))
        engine = TrafficEngine(map_cfg, trips, rng.child("engine"), config)
        name = scenario.name if scenario is not None else "empty"
        logging.info("Loaded %s on %s with %d trips (seed %s)", name, map_cfg.name, len(trips), rng.seed)
        return LoadedRun(map_cfg, engine, name, rng=rng)


@dataclass
class LoadedRun:
    map: MapConfig
    engine: TrafficEngine
    scenario_name: str
    rng: Optional[RandomStream]
    from_savestate: bool = False


def _is_scenario(path: Path) -> bool:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise LoadError(path, exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise LoadError(path, f"corrupt file: {exc}") from exc
    return isinstance(data, dict) and "groups" in data
