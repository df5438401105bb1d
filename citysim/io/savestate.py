from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from citysim.clock import Tick
from citysim.engine.traffic import TrafficEngine
from citysim.errors import LoadError, PersistenceError

SAVESTATE_FORMAT = "citysim-savestate"
SAVESTATE_VERSION = 1


@dataclass(frozen=True)
class Savestate:
    engine: TrafficEngine
    scenario_name: str
    time: Tick


def savestate_path(root: str | Path, map_name: str, scenario_name: str, time: Tick) -> Path:
    return Path(root) / map_name / scenario_name / f"{time.as_filename()}.json"


class SavestateStore:
    """Writes snapshots of one scenario's engine under root/<map>/<scenario>/."""

    def __init__(self, root: str | Path, scenario_name: str) -> None:
        self.root = Path(root)
        self.scenario_name = scenario_name

    def save(self, engine: TrafficEngine) -> Path:
        path = savestate_path(self.root, engine.map_name, self.scenario_name, engine.time)
        document = {
            "format": SAVESTATE_FORMAT,
            "version": SAVESTATE_VERSION,
            "map_name": engine.map_name,
            "scenario_name": self.scenario_name,
            "time": engine.time.ticks,
            "engine": engine.to_state(),
        }
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w") as f:
                json.dump(document, f)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise PersistenceError(f"Couldn't save {path}: {exc}") from exc
        logging.info("Saved %s at %s to %s", self.scenario_name, engine.time, path)
        return path


def load_savestate(path: str | Path) -> Savestate:
    path = Path(path)
    try:
        with path.open() as f:
            document: Dict[str, Any] = json.load(f)
    except OSError as exc:
        raise LoadError(path, exc.strerror or str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise LoadError(path, f"corrupt savestate: {exc}") from exc

    if not isinstance(document, dict) or document.get("format") != SAVESTATE_FORMAT:
        raise LoadError(path, "not a citysim savestate")
    if document.get("version") != SAVESTATE_VERSION:
        raise LoadError(path, f"unsupported savestate version {document.get('version')!r}")
    try:
        engine = TrafficEngine.from_state(document["engine"])
        time = Tick(int(document["time"]))
        scenario_name = str(document["scenario_name"])
    except (KeyError, TypeError, ValueError) as exc:
        raise LoadError(path, f"incomplete savestate: {exc!r}") from exc
    if engine.time != time:
        raise LoadError(path, f"engine time {engine.time} doesn't match savestate time {time}")
    logging.info("Loaded savestate of %s on %s at %s", scenario_name, engine.map_name, time)
    return Savestate(engine=engine, scenario_name=scenario_name, time=time)
