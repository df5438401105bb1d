from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple


class Timer:
    """Logs wall-clock time spent in named phases of a batch job."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._started: Dict[str, float] = {}
        self.results: List[Tuple[str, float]] = []
        self._created = time.perf_counter()

    def start(self, label: str) -> None:
        if label in self._started:
            raise RuntimeError(f"Timer phase {label!r} already started")
        self._started[label] = time.perf_counter()

    def stop(self, label: str) -> float:
        if label not in self._started:
            raise RuntimeError(f"Timer phase {label!r} was never started")
        elapsed = time.perf_counter() - self._started.pop(label)
        self.results.append((label, elapsed))
        logging.info("%s: %s took %.2fs", self.name, label, elapsed)
        return elapsed

    @contextmanager
    def phase(self, label: str) -> Iterator[None]:
        self.start(label)
        try:
            yield
        finally:
            self.stop(label)

    def done(self) -> float:
        total = time.perf_counter() - self._created
        logging.info("%s finished in %.2fs", self.name, total)
        return total
