from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from citysim.challenges.baseline import PrebakedResults, load_prebaked, prebaked_path, run_to_end_of_day
from citysim.challenges.registry import (
    Challenge,
    CreateGridlock,
    FasterTrips,
    IncreaseBadnessAbove,
    OptimizeBus,
    ReduceAverageWaitBy,
    ReduceMedianBy,
)
from citysim.config import SimulationConfig
from citysim.errors import ChallengeError
from citysim.io.timer import Timer
from citysim.metrics.stats import RunStatistics, summarize_run
from citysim.world.map import MapEdits


@dataclass(frozen=True)
class Pass:
    summary: str

    @property
    def passed(self) -> bool:
        return True


@dataclass(frozen=True)
class Fail:
    reason: str

    @property
    def passed(self) -> bool:
        return False


Verdict = Union[Pass, Fail]


def check_goal(challenge: Challenge) -> None:
    """The structured goal must measure the same thing as the gameplay mode."""
    gameplay, goal = challenge.gameplay, challenge.goal
    if isinstance(gameplay, FasterTrips):
        ok = isinstance(goal, ReduceMedianBy) and goal.mode is gameplay.mode
    elif isinstance(gameplay, OptimizeBus):
        ok = isinstance(goal, ReduceAverageWaitBy) and goal.route == gameplay.route
    elif isinstance(gameplay, CreateGridlock):
        ok = isinstance(goal, IncreaseBadnessAbove)
    else:
        raise ChallengeError(f"{challenge.title}: unknown gameplay mode {gameplay!r}")
    if not ok:
        raise ChallengeError(f"{challenge.title}: goal {goal!r} doesn't match gameplay {gameplay!r}")


def evaluate(challenge: Challenge, current: RunStatistics, baseline: Optional[PrebakedResults] = None) -> Verdict:
    check_goal(challenge)
    goal = challenge.goal

    if isinstance(goal, IncreaseBadnessAbove):
        badness = current.unfinished_trips
        if badness > goal.threshold:
            return Pass(f"{badness} trips never finished (needed more than {goal.threshold})")
        return Fail(f"Only {badness} trips never finished; need more than {goal.threshold}")

    if baseline is None:
        raise ChallengeError(f"{challenge.title} needs prebaked results for {challenge.map_name}")
    if baseline.map_name != challenge.map_name:
        raise ChallengeError(
            f"{challenge.title} is played on {challenge.map_name}, but the baseline is for {baseline.map_name}"
        )

    if isinstance(goal, ReduceMedianBy):
        before = baseline.faster_trips.get(goal.mode)
        after = current.trips.get(goal.mode)
        if before is None:
            return Fail(f"The baseline for {challenge.map_name} has no {goal.mode.value} trips")
        if after is None:
            return Fail(f"No {goal.mode.value} trips finished")
        target = before.p50 - goal.amount
        summary = f"50%ile {goal.mode.value} trip time went from {before.p50} to {after.p50}; needed {target} or less"
        return Pass(summary) if after.p50 <= target else Fail(summary)

    if isinstance(goal, ReduceAverageWaitBy):
        before = baseline.bus_routes.get(goal.route)
        after = current.bus_routes.get(goal.route)
        if before is None:
            return Fail(f"The baseline for {challenge.map_name} has no buses on route {goal.route}")
        if after is None:
            return Fail(f"No buses on route {goal.route} reached a second stop")
        target = before.mean - goal.amount
        summary = (
            f"Average time between route {goal.route}'s stops went from {before.mean} to {after.mean}; "
            f"needed {target} or less"
        )
        return Pass(summary) if after.mean <= target else Fail(summary)

    raise ChallengeError(f"{challenge.title}: unknown goal {goal!r}")


def run_challenge(
    challenge: Challenge,
    seed: Optional[int],
    edits: Optional[MapEdits] = None,
    *,
    config: Optional[SimulationConfig] = None,
    timer: Optional[Timer] = None,
) -> RunStatistics:
    """Rerun the baseline scenario on the challenge's map with the player's edits."""
    config = config or SimulationConfig()
    ledger, engine = run_to_end_of_day(
        challenge.map_name,
        config.challenges.baseline_scenario,
        seed,
        config=config,
        edits=edits,
        timer=timer,
        run_name="challenge",
    )
    return summarize_run(ledger, engine)


def score_challenge(
    challenge: Challenge,
    seed: Optional[int],
    edits: Optional[MapEdits] = None,
    *,
    config: Optional[SimulationConfig] = None,
    prebaked_dir: str | Path | None = None,
) -> Verdict:
    config = config or SimulationConfig()
    check_goal(challenge)
    baseline = None
    if not isinstance(challenge.goal, IncreaseBadnessAbove):
        path = prebaked_path(
            prebaked_dir or config.data.prebaked_dir, challenge.map_name, config.challenges.baseline_scenario
        )
        baseline = load_prebaked(path, map_name=challenge.map_name)
        if seed is not None and seed != baseline.rng_seed:
            raise ChallengeError(
                f"{challenge.title}: the baseline for {challenge.map_name} was recorded with seed "
                f"{baseline.rng_seed}, not {seed}; prebake again or score with the same seed"
            )
    current = run_challenge(challenge, seed, edits, config=config)
    verdict = evaluate(challenge, current, baseline)
    logging.info("%s: %s", challenge.title, "PASS" if verdict.passed else "FAIL")
    return verdict
