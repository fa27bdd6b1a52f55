"""Welcome message when the bot is added to a guild."""

from __future__ import annotations

import discord

from src.core.logging.logger import get_logger

logger = get_logger(__name__)

name = "on_guild_join"

WELCOME = "Thanks for adding Beacon! Use `/help` to see what I can do."


async def execute(guild: discord.Guild) -> None:
    logger.info(
        "Joined guild",
        extra={
            "guild_name": guild.name,
            "guild_id": guild.id,
            "member_count": getattr(guild, "member_count", 0),
        },
    )

    channel = guild.system_channel
    if channel is None or not channel.permissions_for(guild.me).send_messages:
        return

    try:
        await channel.send(WELCOME)
    except discord.HTTPException as exc:
        logger.warning(
            "Failed to send welcome message",
            extra={"guild_id": guild.id, "error": str(exc), "error_type": type(exc).__name__},
        )
