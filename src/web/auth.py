"""
Shared-secret authentication for inbound webhooks.

The secret is accepted from, in order:

1. the ``X-Webhook-Secret`` header
2. ``Authorization: Bearer <secret>``
3. a ``secret`` field in a JSON body

Comparison is constant-time. When no secret is configured every request is
rejected.
"""

from __future__ import annotations

import functools
import hmac
from typing import Awaitable, Callable, Optional

from aiohttp import web

from src.core.logging.logger import get_logger
from src.web.state import STATE_KEY

logger = get_logger(__name__)

SECRET_HEADER = "X-Webhook-Secret"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


async def extract_secret(request: web.Request) -> Optional[str]:
    header = request.headers.get(SECRET_HEADER)
    if header:
        return header

    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    if request.can_read_body and request.content_type == "application/json":
        try:
            body = await request.json()
        except (ValueError, UnicodeDecodeError):
            return None
        if isinstance(body, dict):
            secret = body.get("secret")
            if isinstance(secret, str) and secret:
                return secret

    return None


def secrets_match(provided: Optional[str], expected: str) -> bool:
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def unauthorized() -> web.Response:
    return web.json_response({"error": "Unauthorized"}, status=401)


def require_webhook_secret(handler: Handler) -> Handler:
    """Route decorator: answer 401 unless the request carries the shared secret."""

    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        state = request.app[STATE_KEY]
        provided = await extract_secret(request)

        if not secrets_match(provided, state.webhook_secret):
            logger.warning(
                "Rejected unauthenticated webhook",
                extra={
                    "path": request.path,
                    "remote": request.remote,
                    "secret_configured": bool(state.webhook_secret),
                    "secret_provided": provided is not None,
                },
            )
            return unauthorized()

        return await handler(request)

    return wrapper
