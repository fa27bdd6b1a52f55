"""
Beacon Discord Connection

Purpose
-------
The single persistent connection to Discord, carrying the handler registry
and the event bus that bound handlers are subscribed to.

Responsibilities
----------------
- Forward every gateway dispatch to the EventBus with its arguments
- Expose non-blocking readiness and cache counts for the control plane

Non-Responsibilities
--------------------
- Login sequencing and failure policy (handled by the Supervisor)
- Handler discovery and binding (registry and dispatcher)
- Business logic (individual handler modules)

Architecture Notes
------------------
- BeaconBot receives its dependencies via the constructor.
- ``discord.Client.dispatch`` is the only hook: the library still runs its
  own ``on_<event>`` coroutines and waiters, then the bus delivers to bound
  handlers. Handlers never see ``on_`` prefixed names.
"""

from __future__ import annotations

from typing import Any, Optional

import discord

from src.bot.registry import HandlerRegistry
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    intents.message_content = True
    return intents


class BeaconBot(discord.Client):
    """
    Discord client with registry and event bus attached.

    Dependencies (Injected):
    - registry: handlers discovered at startup
    - event_bus: bus the dispatcher binds event handlers to
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        event_bus: Optional[EventBus] = None,
        *,
        intents: Optional[discord.Intents] = None,
        **options: Any,
    ) -> None:
        self._registry = registry
        self._event_bus = event_bus or EventBus()

        super().__init__(intents=intents or default_intents(), **options)

        logger.debug(
            "BeaconBot initialized",
            extra={
                "commands_loaded": registry.command_count,
                "event_handlers": registry.event_count,
            },
        )

    # --------------------------------------------------------------- #
    # Event forwarding
    # --------------------------------------------------------------- #

    def dispatch(self, event: str, /, *args: Any, **kwargs: Any) -> None:
        super().dispatch(event, *args, **kwargs)
        self._event_bus.emit(event, *args)

    # --------------------------------------------------------------- #
    # Read-only state for the control plane
    # --------------------------------------------------------------- #

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def readiness(self) -> str:
        return "ready" if self.is_ready() else "not_ready"

    @property
    def guild_count(self) -> int:
        return len(self.guilds)

    @property
    def user_count(self) -> int:
        return len(self.users)

    @property
    def commands_loaded(self) -> int:
        return self._registry.command_count
