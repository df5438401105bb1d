from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple, Union

from citysim.clock import Duration
from citysim.errors import ChallengeError
from citysim.world.trips import TripMode


@dataclass(frozen=True)
class OptimizeBus:
    route: str


@dataclass(frozen=True)
class CreateGridlock:
    pass


@dataclass(frozen=True)
class FasterTrips:
    mode: TripMode


GameplayMode = Union[OptimizeBus, CreateGridlock, FasterTrips]


@dataclass(frozen=True)
class ReduceMedianBy:
    mode: TripMode
    amount: Duration


@dataclass(frozen=True)
class ReduceAverageWaitBy:
    route: str
    amount: Duration


@dataclass(frozen=True)
class IncreaseBadnessAbove:
    """Badness is the number of trips still unfinished at the end of the day."""

    threshold: int


Goal = Union[ReduceMedianBy, ReduceAverageWaitBy, IncreaseBadnessAbove]


@dataclass(frozen=True)
class Challenge:
    title: str
    description: str
    map_name: str
    gameplay: GameplayMode
    goal: Goal


_CATALOG: Tuple[Challenge, ...] = (
    Challenge(
        title="Speed up route 48 (just Montlake area)",
        description="Decrease the average waiting time between all of route 48's stops by at least 30s",
        map_name="montlake",
        gameplay=OptimizeBus("48"),
        goal=ReduceAverageWaitBy("48", Duration.seconds(30)),
    ),
    Challenge(
        title="Speed up route 48 (larger section)",
        description="Decrease the average waiting time between all of 48's stops by at least 30s",
        map_name="23rd",
        gameplay=OptimizeBus("48"),
        goal=ReduceAverageWaitBy("48", Duration.seconds(30)),
    ),
    Challenge(
        title="Gridlock all of the everything",
        description="Make traffic as BAD as possible!",
        map_name="montlake",
        gameplay=CreateGridlock(),
        goal=IncreaseBadnessAbove(0),
    ),
    Challenge(
        title="Speed up all bike trips",
        description="Reduce the 50%ile trip times of bikes by at least 1 minute",
        map_name="montlake",
        gameplay=FasterTrips(TripMode.BIKE),
        goal=ReduceMedianBy(TripMode.BIKE, Duration.minutes(1)),
    ),
    Challenge(
        title="Speed up all car trips",
        description="Reduce the 50%ile trip times of drivers by at least 5 minutes",
        map_name="montlake",
        gameplay=FasterTrips(TripMode.DRIVE),
        goal=ReduceMedianBy(TripMode.DRIVE, Duration.minutes(5)),
    ),
)


def all_challenges() -> Tuple[Challenge, ...]:
    return _CATALOG


def find_challenge(title: str) -> Challenge:
    wanted = title.strip().lower()
    for challenge in _CATALOG:
        if challenge.title.lower() == wanted:
            return challenge
    raise ChallengeError(f"No challenge called {title!r}; choose from {[c.title for c in _CATALOG]}")


def maps_in_catalog() -> List[str]:
    names: List[str] = []
    for challenge in _CATALOG:
        if challenge.map_name not in names:
            names.append(challenge.map_name)
    return names


def describe_gameplay(gameplay: GameplayMode) -> str:
    if isinstance(gameplay, OptimizeBus):
        return f"optimize bus route {gameplay.route}"
    if isinstance(gameplay, CreateGridlock):
        return "create gridlock"
    if isinstance(gameplay, FasterTrips):
        return f"faster {gameplay.mode.value} trips"
    raise ChallengeError(f"Unknown gameplay mode {gameplay!r}")
