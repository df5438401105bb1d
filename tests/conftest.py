from pathlib import Path

import pytest

from citysim.config import DataConfig, EngineConfig, SimulationConfig
from citysim.world.map import MapConfig


@pytest.fixture
def data_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "data"


@pytest.fixture
def sim_config(data_dir: Path) -> SimulationConfig:
    return SimulationConfig(data=DataConfig(data_dir=data_dir))


@pytest.fixture
def still_config() -> EngineConfig:
    return EngineConfig(jitter=0.0)


@pytest.fixture
def tiny_map() -> MapConfig:
    return MapConfig.model_validate(
        {
            "name": "tiny",
            "mode_speeds": {"walk": 1.0, "bike": 5.0, "drive": 10.0},
            "road_capacity": 1,
            "min_trip_distance_m": 100,
            "max_trip_distance_m": 1000,
            "access_distance_m": 0.0,
            "bus_routes": [
                {
                    "name": "1",
                    "stop_spacing_m": [100.0, 100.0],
                    "first_departure": "00:01:00",
                    "last_departure": "00:01:00",
                    "speed_mps": 10.0,
                }
            ],
        }
    )
