"""
Bot infrastructure and Discord integration layer for Beacon.

Purpose
-------
Expose the primary bot-facing types used by the rest of the system:

- Connection implementation (BeaconBot)
- Handler descriptors, registry and discovery
- Event dispatcher (bind, invoke_command)
- Process supervisor and failure policy

Design Notes
------------
- This module is intentionally thin: it only re-exports selected bot-layer types.
- Public API is explicit via __all__ to avoid leaking internal details.

Example
-------
    from src.bot import Supervisor, SupervisorSettings

    exit_code = await Supervisor(SupervisorSettings.from_config()).run()
"""

from __future__ import annotations

from src.bot.beacon_bot import BeaconBot, default_intents
from src.bot.dispatcher import GENERIC_ERROR_REPLY, bind, invoke_command
from src.bot.handlers import CommandHandler, CommandSchema, EventHandler, normalize_event_name
from src.bot.registry import HandlerDiscovery, HandlerRegistry, LoadResult, discover
from src.bot.supervisor import (
    EXIT_FAILURE,
    EXIT_OK,
    ConnectionLifeline,
    FailurePolicy,
    HttpLifeline,
    Supervisor,
    SupervisorSettings,
)

__all__ = [
    # Connection
    "BeaconBot",
    "default_intents",
    # Handlers
    "CommandSchema",
    "CommandHandler",
    "EventHandler",
    "normalize_event_name",
    "HandlerRegistry",
    "HandlerDiscovery",
    "LoadResult",
    "discover",
    # Dispatch
    "bind",
    "invoke_command",
    "GENERIC_ERROR_REPLY",
    # Supervision
    "Supervisor",
    "SupervisorSettings",
    "FailurePolicy",
    "HttpLifeline",
    "ConnectionLifeline",
    "EXIT_OK",
    "EXIT_FAILURE",
]
