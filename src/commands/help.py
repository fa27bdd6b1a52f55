"""/help: list the registered commands."""

from __future__ import annotations

import discord

from src.bot.handlers import CommandSchema

data = {
    "name": "help",
    "description": "List available commands",
}


def render_help(schemas: list[CommandSchema]) -> str:
    if not schemas:
        return "No commands are available."
    lines = [f"`/{schema.name}` {schema.description}".rstrip() for schema in schemas]
    return "\n".join(["**Commands**", *lines])


async def execute(interaction: discord.Interaction) -> None:
    registry = interaction.client.registry
    schemas = [registry.get_command(name).schema for name in registry.command_names()]

    embed = discord.Embed(description=render_help(schemas), color=discord.Color.blurple())
    await interaction.response.send_message(embed=embed, ephemeral=True)
