"""
Configuration subsystem for Beacon.

Static, environment-backed configuration (``.env`` supported) with typed
parsing, bounds checking and load metrics. See ``config.py`` for the full list
of recognised variables.
"""

from src.core.config.config import DEFAULT_HANDLER_LOCATIONS, Config, Environment

__all__ = [
    "Config",
    "Environment",
    "DEFAULT_HANDLER_LOCATIONS",
]
