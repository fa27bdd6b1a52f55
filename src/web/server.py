"""
HTTP Control Plane Server

Purpose
-------
Run the aiohttp application that exposes /health, /metrics and the
authenticated /notify-bot webhook on the same event loop as the Discord
connection.

Architecture Notes
------------------
- The listener comes up before login and does not depend on readiness;
  /health reports ``not_ready`` until the gateway handshake completes.
- A bind failure is raised as ControlPlaneStartupError; the Supervisor
  treats it as fatal.
"""

from __future__ import annotations

from typing import Optional

from aiohttp import web

from src.core.exceptions import ControlPlaneStartupError
from src.core.logging.logger import get_logger
from src.web.routes import routes
from src.web.state import STATE_KEY, ControlPlaneState

logger = get_logger(__name__)


def build_app(state: ControlPlaneState) -> web.Application:
    app = web.Application()
    app[STATE_KEY] = state
    app.add_routes(routes)
    return app


class ControlPlane:
    """
    Owns the aiohttp runner and site for one process.

    Example
    -------
    >>> plane = ControlPlane(state, host="0.0.0.0", port=3001)
    >>> await plane.start()
    >>> plane.port
    3001
    """

    def __init__(self, state: ControlPlaneState, *, host: str, port: int) -> None:
        self.state = state
        self.host = host
        self._requested_port = port
        self.app = build_app(state)
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def listening(self) -> bool:
        return self._site is not None

    @property
    def port(self) -> int:
        """Bound port; resolves port 0 to the one the OS picked."""
        if self._runner is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple) and len(address) >= 2:
                    return int(address[1])
        return self._requested_port

    async def start(self) -> None:
        """
        Bind and start listening.

        Raises
        ------
        ControlPlaneStartupError
            If the address cannot be bound.
        """
        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()

        site = web.TCPSite(runner, self.host, self._requested_port)
        try:
            await site.start()
        except OSError as exc:
            await runner.cleanup()
            logger.critical(
                "Control plane failed to bind",
                extra={"host": self.host, "port": self._requested_port, "error": str(exc)},
            )
            raise ControlPlaneStartupError(self.host, self._requested_port, exc) from exc

        self._runner = runner
        self._site = site
        logger.info(
            "✓ Control plane listening on %s:%d",
            self.host,
            self.port,
            extra={"host": self.host, "port": self.port},
        )

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        self._site = None
        logger.info("Control plane stopped")
