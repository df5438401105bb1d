from __future__ import annotations


class CitySimError(Exception):
    pass


class ConfigError(CitySimError):
    """Malformed or missing configuration; aborts only the requested operation."""


class LoadError(CitySimError):
    """A map, scenario, savestate or baseline file could not be read."""

    def __init__(self, path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Couldn't load {path}: {reason}")


class PersistenceError(CitySimError):
    """A savestate or result file could not be written."""


class ChallengeError(CitySimError):
    pass
