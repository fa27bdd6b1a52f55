"""Administrator-only slash commands."""
