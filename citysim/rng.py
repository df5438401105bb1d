from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np


def _derive_seed(seed: int, name: str) -> int:
    payload = f"{seed}:{name}".encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    return int.from_bytes(digest[:8], "big") & ((1 << 63) - 1)


@dataclass
class RandomStream:
    """Seeded PCG64 stream. Same seed and same calls give the same output on every platform."""

    seed: Optional[int]
    deterministic: bool = True
    _generator: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._generator = np.random.Generator(np.random.PCG64(self.seed))

    @classmethod
    def seeded(cls, seed: int) -> RandomStream:
        if seed is None:
            raise ValueError("seeded() needs an explicit seed; use from_entropy() for exploratory runs")
        return cls(int(seed))

    @classmethod
    def from_entropy(cls) -> RandomStream:
        seed = int(np.random.SeedSequence().entropy & ((1 << 63) - 1))
        logging.warning(
            "No RNG seed given; seeding from system entropy (seed %d). This run is not reproducible.",
            seed,
        )
        return cls(seed, deterministic=False)

    def child(self, name: str) -> RandomStream:
        """Independent stream for one subsystem, derived from this stream's seed."""
        return RandomStream(_derive_seed(self.seed, name), deterministic=self.deterministic)

    def uniform(self, low: float, high: float) -> float:
        return float(self._generator.uniform(low, high))

    def integers(self, low: int, high: int) -> int:
        """Integer in [low, high)."""
        return int(self._generator.integers(low, high))

    def choice(self, n: int) -> int:
        return self.integers(0, n)

    def get_state(self) -> Dict[str, Any]:
        return self._generator.bit_generator.state

    def set_state(self, state: Dict[str, Any]) -> None:
        self._generator.bit_generator.state = state
