"""Inbound webhook collaborators."""

from src.webhooks.notify_bot import handle_notify_bot

__all__ = ["handle_notify_bot"]
