"""
Control plane route handlers.

| Method/Path       | Auth          | Failure                              |
|-------------------|---------------|--------------------------------------|
| POST /notify-bot  | shared secret | 401 {"error": "Unauthorized"}        |
| GET  /health      | none          | never errors                         |
| GET  /metrics     | none          | 500 {"error": "Failed to fetch metrics"} |
"""

from __future__ import annotations

from aiohttp import web

from src.core.logging.logger import LogContext, get_logger
from src.web.auth import require_webhook_secret
from src.web.metrics import build_metrics_snapshot
from src.web.state import STATE_KEY

logger = get_logger(__name__)

routes = web.RouteTableDef()


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    return web.json_response(
        {
            "status": "ok",
            "uptime": state.uptime(),
            "bot_status": "ready" if state.is_ready() else "not_ready",
        }
    )


@routes.get("/metrics")
async def metrics(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    try:
        snapshot = await build_metrics_snapshot(state)
    except Exception as exc:
        logger.error(
            "Metrics endpoint error",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )
        return web.json_response({"error": "Failed to fetch metrics"}, status=500)

    return web.json_response(snapshot)


@routes.post("/notify-bot")
@require_webhook_secret
async def notify_bot(request: web.Request) -> web.StreamResponse:
    state = request.app[STATE_KEY]
    async with LogContext(component="control_plane", operation="notify_bot"):
        return await state.notify_handler(request, state.connection)
