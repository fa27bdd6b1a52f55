"""Route application-command interactions to their command handler."""

from __future__ import annotations

import discord

from src.bot.dispatcher import invoke_command

name = "interaction"


async def execute(interaction: discord.Interaction) -> None:
    await invoke_command(interaction.client.registry, interaction)
