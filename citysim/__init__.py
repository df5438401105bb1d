"""Deterministic headless city traffic simulation."""

__version__ = "0.1.0"
