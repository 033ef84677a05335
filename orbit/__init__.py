"""Orbit: surgical milestone template engine."""

__version__ = "0.1.0"
