from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

TICKS_PER_SECOND = 10

_TIME_RE = re.compile(r"^(\d+):([0-5]?\d)(?::([0-5]?\d)(?:\.(\d))?)?$")


@dataclass(frozen=True, order=True)
class Duration:
    """A span of simulated time, counted in ticks."""

    ticks: int

    def __post_init__(self) -> None:
        if not isinstance(self.ticks, int) or isinstance(self.ticks, bool):
            raise TypeError(f"Duration ticks must be int, got {self.ticks!r}")

    @classmethod
    def zero(cls) -> Duration:
        return cls(0)

    @classmethod
    def seconds(cls, seconds: float) -> Duration:
        return cls(int(round(seconds * TICKS_PER_SECOND)))

    @classmethod
    def minutes(cls, minutes: float) -> Duration:
        return cls.seconds(minutes * 60)

    @classmethod
    def hours(cls, hours: float) -> Duration:
        return cls.seconds(hours * 3600)

    def inner_seconds(self) -> float:
        return self.ticks / TICKS_PER_SECOND

    def __add__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(self.ticks + other.ticks)

    def __sub__(self, other: Duration) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(self.ticks - other.ticks)

    def __neg__(self) -> Duration:
        return Duration(-self.ticks)

    def __str__(self) -> str:
        sign = "-" if self.ticks < 0 else ""
        return f"{sign}{_format_ticks(abs(self.ticks))}"


@dataclass(frozen=True, order=True)
class Tick:
    """A point on the simulated clock. Ticks are tenths of a second since midnight."""

    ticks: int

    def __post_init__(self) -> None:
        if not isinstance(self.ticks, int) or isinstance(self.ticks, bool):
            raise TypeError(f"Tick must be int, got {self.ticks!r}")
        if self.ticks < 0:
            raise ValueError(f"Tick can't be negative: {self.ticks}")

    @classmethod
    def zero(cls) -> Tick:
        return cls(0)

    @classmethod
    def from_seconds(cls, seconds: float) -> Tick:
        return cls(int(round(seconds * TICKS_PER_SECOND)))

    @classmethod
    def parse(cls, text: str) -> Optional[Tick]:
        """Parse HH:MM, HH:MM:SS or HH:MM:SS.T. Returns None for malformed text."""
        match = _TIME_RE.match(text.strip()) if isinstance(text, str) else None
        if match is None:
            return None
        hours, minutes, seconds, tenths = match.groups()
        total = (int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)) * TICKS_PER_SECOND
        return cls(total + int(tenths or 0))

    def inner_seconds(self) -> float:
        return self.ticks / TICKS_PER_SECOND

    def as_filename(self) -> str:
        hours, minutes, seconds, tenths = _split(self.ticks)
        return f"{hours:02d}h{minutes:02d}m{seconds:02d}.{tenths}s"

    def is_multiple_of(self, interval: Duration) -> bool:
        return interval.ticks > 0 and self.ticks % interval.ticks == 0

    def __add__(self, other: Duration) -> Tick:
        if not isinstance(other, Duration):
            return NotImplemented
        return Tick(self.ticks + other.ticks)

    def __sub__(self, other):
        if isinstance(other, Tick):
            return Duration(self.ticks - other.ticks)
        if isinstance(other, Duration):
            return Tick(self.ticks - other.ticks)
        return NotImplemented

    def __str__(self) -> str:
        return _format_ticks(self.ticks)


def _split(ticks: int) -> tuple[int, int, int, int]:
    seconds, tenths = divmod(ticks, TICKS_PER_SECOND)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return hours, minutes, seconds, tenths


def _format_ticks(ticks: int) -> str:
    hours, minutes, seconds, tenths = _split(ticks)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{tenths}"


END_OF_DAY = Tick.from_seconds(24 * 3600)
