"""
Default /notify-bot collaborator.

Delivers a message from an external system to a Discord user (direct
message) or channel.

Request body (JSON)::

    {"message": "Server ready", "user_id": "1234"}
    {"message": "Server ready", "channel_id": "5678"}

Responses: 200 ``{"success": true}``; 400 on a malformed body; 503 while the
connection is not ready; 404 for an unknown target; 502 on a Discord API
error.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import discord
from aiohttp import web

from src.core.logging.logger import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


def _parse_snowflake(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


async def _read_body(request: web.Request) -> Optional[Dict[str, Any]]:
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


async def _resolve_user(connection: Any, user_id: int) -> Any:
    user = connection.get_user(user_id)
    if user is None:
        user = await connection.fetch_user(user_id)
    return user


async def _resolve_channel(connection: Any, channel_id: int) -> Any:
    channel = connection.get_channel(channel_id)
    if channel is None:
        channel = await connection.fetch_channel(channel_id)
    return channel


async def handle_notify_bot(request: web.Request, connection: Any) -> web.Response:
    body = await _read_body(request)
    if body is None:
        return _error("Request body must be a JSON object", 400)

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        return _error("'message' is required", 400)
    if len(message) > MAX_MESSAGE_LENGTH:
        return _error(f"'message' exceeds {MAX_MESSAGE_LENGTH} characters", 400)

    has_user = "user_id" in body
    has_channel = "channel_id" in body
    if has_user == has_channel:
        return _error("Exactly one of 'user_id' or 'channel_id' is required", 400)

    target_id = _parse_snowflake(body["user_id"] if has_user else body["channel_id"])
    if target_id is None:
        return _error("Target id must be a Discord snowflake", 400)

    if connection is None or not connection.is_ready():
        return _error("Bot is not ready", 503)

    target_kind = "user" if has_user else "channel"

    try:
        if has_user:
            target = await _resolve_user(connection, target_id)
        else:
            target = await _resolve_channel(connection, target_id)
            if not isinstance(target, discord.abc.Messageable):
                return _error("Channel cannot receive messages", 400)

        await target.send(message)

    except discord.NotFound:
        return _error(f"Unknown {target_kind}", 404)

    except discord.HTTPException as exc:
        logger.warning(
            "Discord rejected webhook notification",
            extra={
                "target_kind": target_kind,
                "target_id": target_id,
                "status": exc.status,
                "error": str(exc),
            },
        )
        return _error("Discord API error", 502)

    logger.info(
        "Webhook notification delivered",
        extra={"target_kind": target_kind, "target_id": target_id},
    )
    return web.json_response({"success": True})
