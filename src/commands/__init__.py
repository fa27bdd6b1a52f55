"""Slash command handlers. Each module exposes ``data`` and ``execute``."""
