"""
Shared state behind the HTTP control plane.

The control plane owns nothing: it reads the connection and the stats
accessors through this record and computes a fresh snapshot per request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web

from src.core.database.queries import StatsQueries

NotifyHandler = Callable[[web.Request, Any], Awaitable[web.StreamResponse]]


@dataclass
class ControlPlaneState:
    """
    Attributes
    ----------
    connection:
        The BeaconBot (anything with ``is_ready()``, ``guilds``, ``users``
        and ``registry``). May be None before the Supervisor creates it.
    queries:
        Stats accessors; missing ones report 0.
    notify_handler:
        Collaborator invoked for authenticated ``POST /notify-bot``.
    webhook_secret:
        Shared secret; empty means every notify request is rejected.
    """

    connection: Optional[Any]
    queries: StatsQueries
    notify_handler: NotifyHandler
    webhook_secret: str = ""
    max_concurrent_servers: int = 6
    environment: str = "production"
    version: str = "1.0.0"
    started_at: float = field(default_factory=time.monotonic)

    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    def is_ready(self) -> bool:
        return self.connection is not None and bool(self.connection.is_ready())


STATE_KEY = web.AppKey("control_plane_state", ControlPlaneState)
