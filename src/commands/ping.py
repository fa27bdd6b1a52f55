"""/ping: gateway round-trip check."""

from __future__ import annotations

import discord

from src.bot.handlers import CommandSchema

data = CommandSchema(name="ping", description="Check that the bot is alive")


async def execute(interaction: discord.Interaction) -> None:
    latency_ms = round(interaction.client.latency * 1000)
    await interaction.response.send_message(f"Pong! ({latency_ms}ms)", ephemeral=True)
