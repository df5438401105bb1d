from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from citysim.clock import Duration, Tick
from citysim.engine.base import SimulationEngine
from citysim.errors import ConfigError
from citysim.io.savestate import SavestateStore
from citysim.io.timer import Timer
from citysim.metrics.ledger import TripLedger


@dataclass(frozen=True)
class TimeBound:
    """Stop once the clock reaches `at`."""

    at: Tick


@dataclass(frozen=True)
class SaveAt:
    """Persist the engine when the clock lands on `at`, then stop unless told otherwise."""

    at: Tick
    stop: bool = True


@dataclass(frozen=True)
class SaveEvery:
    """Persist the engine at every multiple of `interval`; never stops the run."""

    interval: Duration

    def __post_init__(self) -> None:
        if self.interval.ticks <= 0:
            raise ConfigError(f"savestate interval must be positive, got {self.interval}")


@dataclass(frozen=True)
class Always:
    """Stop after the first step."""


@dataclass(frozen=True)
class Custom:
    predicate: Callable[[SimulationEngine], bool]
    name: str = "custom"


HaltCondition = Union[TimeBound, SaveAt, SaveEvery, Always, Custom]
HALT_CONDITION_TYPES = (TimeBound, SaveAt, SaveEvery, Always, Custom)


@dataclass
class RunResult:
    ledger: TripLedger
    time: Tick
    halted_by: Optional[HaltCondition] = None
    savestates: List[Path] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.halted_by is None


def _next_boundary(condition: HaltCondition, now: Tick) -> Optional[Tick]:
    if isinstance(condition, (TimeBound, SaveAt)):
        return condition.at if condition.at > now else None
    if isinstance(condition, SaveEvery):
        interval = condition.interval.ticks
        return Tick((now.ticks // interval + 1) * interval)
    return None


def _check(
    condition: HaltCondition,
    engine: SimulationEngine,
    savestates: Optional[SavestateStore],
    saved: List[Path],
) -> bool:
    if isinstance(condition, TimeBound):
        return engine.time >= condition.at
    if isinstance(condition, SaveAt):
        if engine.time != condition.at:
            return False
        saved.append(savestates.save(engine))
        return condition.stop
    if isinstance(condition, SaveEvery):
        if engine.time.ticks > 0 and engine.time.is_multiple_of(condition.interval):
            saved.append(savestates.save(engine))
        return False
    if isinstance(condition, Always):
        return True
    if isinstance(condition, Custom):
        return bool(condition.predicate(engine))
    raise ConfigError(f"Unknown halt condition {condition!r}")


def run_until_done(
    engine: SimulationEngine,
    halt_conditions: Sequence[HaltCondition] = (),
    *,
    step: Duration = Duration.seconds(30),
    savestates: Optional[SavestateStore] = None,
    timer: Optional[Timer] = None,
    progress_every: Duration = Duration.hours(1),
) -> RunResult:
    """Advance the engine until it has nothing left to do or a halt condition asks to stop.

    Every step lands exactly on any pending TimeBound/SaveAt/SaveEvery boundary, so
    persistence only ever sees a fully advanced engine. Conditions are checked in
    order after each step and all of them run, even when an earlier one stops.
    Persistence errors propagate to the caller.
    """
    conditions = list(halt_conditions)
    for condition in conditions:
        if not isinstance(condition, HALT_CONDITION_TYPES):
            raise ConfigError(f"Unknown halt condition {condition!r}")
        if isinstance(condition, (SaveAt, SaveEvery)) and savestates is None:
            raise ConfigError(f"{condition} needs a savestate store")
    if step.ticks <= 0:
        raise ConfigError(f"step must be positive, got {step}")
    if progress_every.ticks <= 0:
        raise ConfigError(f"progress interval must be positive, got {progress_every}")

    ledger = TripLedger()
    saved: List[Path] = []
    halted_by: Optional[HaltCondition] = None
    cursor = len(engine.finished_trips())
    last_progress = engine.time.ticks // progress_every.ticks

    phase = timer.phase("run until done") if timer is not None else nullcontext()
    logging.info("Running %s from %s", engine.map_name, engine.time)
    with phase:
        while not engine.is_done():
            target = engine.time + step
            for condition in conditions:
                boundary = _next_boundary(condition, engine.time)
                if boundary is not None and boundary < target:
                    target = boundary
            engine.step(target - engine.time)

            finished = engine.finished_trips()
            for record in finished[cursor:]:
                ledger.record(record)
            cursor = len(finished)

            for condition in conditions:
                if _check(condition, engine, savestates, saved) and halted_by is None:
                    halted_by = condition

            progress = engine.time.ticks // progress_every.ticks
            if progress > last_progress:
                last_progress = progress
                logging.info(
                    "At %s: %d trips finished this run, %d unfinished",
                    engine.time,
                    len(ledger),
                    engine.unfinished_trips(),
                )
            if halted_by is not None:
                logging.info("Stopped at %s by %s", engine.time, halted_by)
                break
        else:
            logging.info("Simulation done at %s with %d trips finished this run", engine.time, len(ledger))
    return RunResult(ledger=ledger, time=engine.time, halted_by=halted_by, savestates=saved)
