"""/stats: connection and event-bus counters for administrators."""

from __future__ import annotations

import discord

from src.bot.handlers import CommandSchema
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

data = CommandSchema(name="stats", description="Show bot statistics (administrators only)")


def _is_admin(interaction: discord.Interaction) -> bool:
    permissions = getattr(interaction.user, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


async def execute(interaction: discord.Interaction) -> None:
    if not _is_admin(interaction):
        logger.info("Denied /stats", extra={"user_id": interaction.user.id})
        await interaction.response.send_message(
            "You need administrator permission to use this command.", ephemeral=True
        )
        return

    client = interaction.client
    summary = client.event_bus.get_metrics_summary()

    embed = discord.Embed(title="Beacon stats", color=discord.Color.green())
    embed.add_field(name="Guilds", value=str(client.guild_count))
    embed.add_field(name="Cached users", value=str(client.user_count))
    embed.add_field(name="Commands", value=str(client.commands_loaded))
    embed.add_field(name="Events seen", value=str(summary.get("total_events_emitted", 0)))
    embed.add_field(name="Handler errors", value=str(summary.get("total_errors", 0)))
    embed.add_field(name="Latency", value=f"{round(client.latency * 1000)}ms")

    await interaction.response.send_message(embed=embed, ephemeral=True)
