from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from citysim.errors import ConfigError


class EngineConfig(BaseModel):
    step_seconds: float = Field(30.0, gt=0)
    bpr_alpha: float = 0.15
    bpr_beta: float = 4.0
    jitter: float = 0.1
    bus_dwell_seconds: float = 15.0
    bus_boarding_seconds: float = 3.0
    progress_every_seconds: float = Field(3600.0, gt=0)


class DataConfig(BaseModel):
    data_dir: Path = Path("data")

    @property
    def maps_dir(self) -> Path:
        return self.data_dir / "maps"

    @property
    def scenarios_dir(self) -> Path:
        return self.data_dir / "scenarios"

    @property
    def savestates_dir(self) -> Path:
        return self.data_dir / "save"

    @property
    def prebaked_dir(self) -> Path:
        return self.data_dir / "prebaked_results"


class ChallengeConfig(BaseModel):
    baseline_scenario: str = "weekday_typical_traffic_from_psrc"


class OutputConfig(BaseModel):
    save_plots: bool = True
    save_trips: bool = True


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class SimulationConfig(BaseModel):
    engine: EngineConfig = EngineConfig()
    data: DataConfig = DataConfig()
    challenges: ChallengeConfig = ChallengeConfig()
    output: OutputConfig = OutputConfig()
    logging: LoggingConfig = LoggingConfig()


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_yaml(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except FileNotFoundError as exc:
        raise ConfigError(f"{path} does not exist") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(path: str | Path) -> SimulationConfig:
    path = Path(path)
    data = read_yaml(path)
    base_path = data.get("base")
    if base_path:
        base_data = read_yaml(path.parent / base_path)
        data = deep_merge(base_data, data)
        data.pop("base", None)
    try:
        return SimulationConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def dump_config(cfg: SimulationConfig, path: str | Path) -> None:
    path = Path(path)
    path.write_text(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False))


def validate_model(model: type[BaseModel], data: Dict[str, Any], source: str | Path) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"{source}: {exc}") from exc
