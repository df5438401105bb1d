from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from citysim.clock import END_OF_DAY, Duration
from citysim.config import SimulationConfig, validate_model
from citysim.driver import TimeBound, run_until_done
from citysim.engine.traffic import TrafficEngine
from citysim.errors import ConfigError, LoadError, PersistenceError
from citysim.flags import SimFlags, SimOptions
from citysim.io.timer import Timer
from citysim.metrics.ledger import TripLedger
from citysim.metrics.stats import DurationStats, bus_route_stats, from_ledger
from citysim.scenario.spawner import scenario_path
from citysim.world.map import MapEdits
from citysim.world.trips import TripMode


@dataclass(frozen=True)
class PrebakedResults:
    """Baseline stats of one scenario on one map."""

    map_name: str
    scenario_name: str
    rng_seed: int
    faster_trips: Dict[TripMode, DurationStats]
    bus_routes: Dict[str, DurationStats]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "map_name": self.map_name,
            "scenario_name": self.scenario_name,
            "rng_seed": self.rng_seed,
            "faster_trips": {mode.value: stats.to_dict() for mode, stats in self.faster_trips.items()},
            "bus_routes": {route: stats.to_dict() for route, stats in self.bus_routes.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PrebakedResults:
        return cls(
            map_name=str(data["map_name"]),
            scenario_name=str(data["scenario_name"]),
            rng_seed=int(data["rng_seed"]),
            faster_trips={TripMode(mode): DurationStats.from_dict(s) for mode, s in data["faster_trips"].items()},
            bus_routes={str(route): DurationStats.from_dict(s) for route, s in data.get("bus_routes", {}).items()},
        )


def prebaked_path(prebaked_dir: str | Path, map_name: str, scenario_name: str) -> Path:
    return Path(prebaked_dir) / map_name / f"{scenario_name}.json"


def write_prebaked(results: PrebakedResults, path: str | Path) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            json.dump(results.to_dict(), f, indent=2)
    except OSError as exc:
        raise PersistenceError(f"Couldn't write prebaked results to {path}: {exc}") from exc
    return path


def load_prebaked(path: str | Path, map_name: Optional[str] = None) -> PrebakedResults:
    path = Path(path)
    try:
        with path.open() as f:
            data = json.load(f)
        results = PrebakedResults.from_dict(data)
    except OSError as exc:
        raise LoadError(path, exc.strerror or str(exc)) from exc
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise LoadError(path, f"corrupt prebaked results: {exc!r}") from exc
    if map_name is not None and results.map_name != map_name:
        raise LoadError(path, f"baseline is for map {results.map_name}, not {map_name}")
    return results


def run_to_end_of_day(
    map_name: str,
    scenario_name: str,
    seed: Optional[int],
    *,
    config: Optional[SimulationConfig] = None,
    edits: Optional[MapEdits] = None,
    timer: Optional[Timer] = None,
    run_name: str = "prebaked",
) -> Tuple[TripLedger, TrafficEngine]:
    """Deterministically load a scenario with map fixes and run it to the end of the day."""
    if seed is None:
        raise ConfigError(f"{run_name} runs of {map_name} need an explicit rng seed")
    config = config or SimulationConfig()
    flags = validate_model(
        SimFlags,
        {
            "load": scenario_path(config.data.data_dir, map_name, scenario_name),
            "use_map_fixes": True,
            "rng_seed": seed,
            "opts": SimOptions(run_name=run_name),
        },
        f"{run_name} rng seed",
    )
    loaded = flags.load_run(data_dir=config.data.data_dir, config=config.engine, edits=edits, scored=True)
    if loaded.map.name != map_name:
        raise ConfigError(f"Scenario {scenario_name} is for map {loaded.map.name}, not {map_name}")
    result = run_until_done(
        loaded.engine,
        [TimeBound(END_OF_DAY)],
        step=Duration.seconds(config.engine.step_seconds),
        timer=timer,
        progress_every=Duration.seconds(config.engine.progress_every_seconds),
    )
    return result.ledger, loaded.engine


def prebake(
    map_name: str,
    scenario_name: str,
    seed: Optional[int],
    *,
    config: Optional[SimulationConfig] = None,
    out_dir: str | Path | None = None,
    timer: Optional[Timer] = None,
) -> Tuple[PrebakedResults, Path]:
    if seed is None:
        raise ConfigError("Prebaking challenge baselines needs an explicit rng seed")
    config = config or SimulationConfig()
    timer = timer or Timer(f"prebake {map_name}")
    with timer.phase(f"prebake faster trips on {map_name}"):
        ledger, engine = run_to_end_of_day(map_name, scenario_name, seed, config=config, timer=timer)
        with timer.phase("collect results"):
            results = PrebakedResults(
                map_name=map_name,
                scenario_name=scenario_name,
                rng_seed=seed,
                faster_trips=from_ledger(ledger),
                bus_routes=bus_route_stats(engine.bus_segments()),
            )
    path = prebaked_path(out_dir or config.data.prebaked_dir, map_name, scenario_name)
    write_prebaked(results, path)
    for mode, stats in results.faster_trips.items():
        logging.info("Baseline %s on %s: %s", mode.value, map_name, stats.describe())
    logging.info("Wrote prebaked results for %s to %s", map_name, path)
    return results, path


def prebake_all(
    map_names: List[str],
    seed: Optional[int],
    *,
    config: Optional[SimulationConfig] = None,
    out_dir: str | Path | None = None,
    scenario_name: Optional[str] = None,
) -> List[Path]:
    config = config or SimulationConfig()
    scenario_name = scenario_name or config.challenges.baseline_scenario
    timer = Timer("prebake all challenge results")
    paths = []
    for map_name in map_names:
        _, path = prebake(
            map_name,
            scenario_name,
            seed,
            config=config,
            out_dir=out_dir,
            timer=timer,
        )
        paths.append(path)
    timer.done()
    return paths
