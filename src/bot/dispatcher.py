"""
Event Dispatcher

Purpose
-------
Connect registered handlers to the live connection:

- bind() subscribes every event handler to the connection's EventBus with
  ONCE or REPEATING delivery.
- invoke_command() resolves an application command by name when an
  interaction arrives and runs it with failure isolation.

Architecture Notes
------------------
- Handlers receive the dispatch arguments unmodified.
- A failing command is logged and the user gets a generic ephemeral reply;
  a failure to send that reply is logged too and never raised.
"""

from __future__ import annotations

from typing import Any, List, Protocol

import discord

from src.bot.registry import HandlerRegistry
from src.core.event.bus import EventBus
from src.core.event.types import SubscriptionMode
from src.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)

GENERIC_ERROR_REPLY = "There was an error while executing this command!"


class SupportsEventBus(Protocol):
    @property
    def event_bus(self) -> EventBus: ...


def bind(registry: HandlerRegistry, connection: SupportsEventBus) -> List[str]:
    """
    Subscribe every registered event handler to ``connection.event_bus``.

    Returns
    -------
    list[str]:
        Subscription identifiers, in registry order.
    """
    bus = connection.event_bus
    identifiers: List[str] = []

    for handler in registry.events:
        mode = SubscriptionMode.ONCE if handler.once else SubscriptionMode.REPEATING
        identifiers.append(
            bus.subscribe(
                handler.name,
                handler.execute,
                mode=mode,
                identifier=f"{handler.module}@{handler.name}#{len(identifiers)}",
            )
        )

    logger.info(
        "✓ Event handlers bound",
        extra={"bound": len(identifiers), "events": sorted({h.name for h in registry.events})},
    )
    return identifiers


def _is_application_command(interaction: Any) -> bool:
    return getattr(interaction, "type", None) == discord.InteractionType.application_command


def _command_name(interaction: Any) -> str:
    data = getattr(interaction, "data", None) or {}
    return str(data.get("name", ""))


async def _reply_with_error(interaction: Any) -> None:
    try:
        if interaction.response.is_done():
            await interaction.followup.send(GENERIC_ERROR_REPLY, ephemeral=True)
        else:
            await interaction.response.send_message(GENERIC_ERROR_REPLY, ephemeral=True)
    except Exception as exc:
        logger.error(
            "Failed to send error reply",
            extra={"error": str(exc), "error_type": type(exc).__name__},
        )


async def invoke_command(registry: HandlerRegistry, interaction: Any) -> bool:
    """
    Run the command named by an application-command interaction.

    Returns
    -------
    bool:
        True if a command was found and completed without raising.
    """
    if not _is_application_command(interaction):
        return False

    name = _command_name(interaction)
    handler = registry.get_command(name)

    if handler is None:
        logger.warning("No command matching %s was found", name, extra={"command_name": name})
        return False

    user = getattr(interaction, "user", None)
    async with LogContext(
        user_id=getattr(user, "id", None),
        guild_id=getattr(interaction, "guild_id", None),
        command=f"/{name}",
        component="dispatcher",
        operation="invoke_command",
    ):
        try:
            await handler.execute(interaction)
        except Exception as exc:
            logger.error(
                "Command execution failed",
                extra={
                    "command_name": name,
                    "handler_module": handler.module,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            await _reply_with_error(interaction)
            return False

    logger.debug("Command completed", extra={"command_name": name})
    return True
