"""
Process Supervisor for Beacon

Purpose
-------
Sequence startup of the two surfaces (Discord gateway connection and HTTP
control plane), start the background services once login succeeds, and
decide the process exit code.

Responsibilities
----------------
- Install the process-wide failure policies first, remove them last
- Discover handlers, create the connection, bind event handlers
- Start the HTTP listener independently of connection readiness
- Log in; on success start the monitor and cleanup services exactly once,
  then open the gateway session
- Wait for the first of: gateway session ending, fatal fault, stop request
- Tear everything down and return 0 or 1

Non-Responsibilities
--------------------
- Reconnecting the gateway (the client library owns it)
- Retrying a rejected login
- Signal wiring (the entrypoint calls request_shutdown())

Failure Policy
--------------
Asymmetric by origin:

- Async faults (asyncio contexts carrying a ``future``/``task``, and
  transport/protocol reports): logged at ERROR, process keeps running.
- Sync faults (an exception raised from a plain loop callback ``handle``,
  or anything reaching ``sys.excepthook``/``threading.excepthook``):
  logged at CRITICAL, supervisor stops with exit code 1.

Lifelines
---------
HTTP:       IDLE -> LISTENING, or IDLE -> FAILED on bind error
Connection: IDLE -> AUTHENTICATING -> READY | FAILED
"""

from __future__ import annotations

import asyncio
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any, Callable, Dict, List, Optional, Type

import aiohttp
import discord

from src.bot.beacon_bot import BeaconBot
from src.bot.dispatcher import bind
from src.bot.registry import HandlerRegistry, discover
from src.core.config.config import Config
from src.core.database.queries import StatsQueries
from src.core.exceptions import (
    ControlPlaneStartupError,
    HandlerDiscoveryError,
    PlatformAuthenticationError,
)
from src.core.logging.logger import get_logger
from src.services.code_cleanup import CodeCleanupService
from src.services.server_monitor import ServerMonitorService
from src.web.server import ControlPlane
from src.web.state import ControlPlaneState, NotifyHandler
from src.webhooks.notify_bot import handle_notify_bot

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class HttpLifeline(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    FAILED = "failed"


class ConnectionLifeline(Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"


# ============================================================================
# Failure policy
# ============================================================================


class FailurePolicy:
    """
    Installs the loop exception handler and the interpreter excepthooks.

    ``fatal`` is set (and ``exit_code`` becomes 1) on the first sync fault.
    """

    ASYNC_KEYS = ("future", "task", "transport", "protocol", "asyncgen")

    def __init__(self) -> None:
        self.fatal = asyncio.Event()
        self.exit_code = EXIT_OK
        self.fatal_reason: Optional[str] = None
        self.async_faults = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Optional[Callable[..., Any]] = None
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._previous_threading_hook: Optional[Callable[..., Any]] = None

    @property
    def installed(self) -> bool:
        return self._loop is not None

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is not None:
            return

        self._loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._handle_uncaught

        self._previous_threading_hook = threading.excepthook
        threading.excepthook = self._handle_thread_uncaught

        logger.debug("Failure policies installed")

    def uninstall(self) -> None:
        if self._loop is None:
            return

        self._loop.set_exception_handler(self._previous_loop_handler)
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
        if self._previous_threading_hook is not None:
            threading.excepthook = self._previous_threading_hook

        self._loop = None
        logger.debug("Failure policies removed")

    # ------------------------------------------------------------------ #
    # Classification
    # ------------------------------------------------------------------ #

    @classmethod
    def is_async_fault(cls, context: Dict[str, Any]) -> bool:
        if any(key in context for key in cls.ASYNC_KEYS):
            return True
        # No callback handle and no exception: a loop diagnostic, not a fault
        return not ("handle" in context and "exception" in context)

    def _handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None

        if self.is_async_fault(context):
            self.async_faults += 1
            logger.error(
                "Unhandled async error: %s",
                message,
                extra={
                    "error": str(exc) if exc is not None else None,
                    "error_type": type(exc).__name__ if exc is not None else None,
                },
                exc_info=exc_info,
            )
            return

        logger.critical(
            "Uncaught synchronous fault: %s",
            message,
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "handle": repr(context.get("handle")),
            },
            exc_info=exc_info,
        )
        self._trigger_fatal(f"{type(exc).__name__}: {exc}")

    def _handle_uncaught(
        self,
        exc_type: Type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        logger.critical(
            "Uncaught exception",
            extra={"error": str(exc), "error_type": exc_type.__name__},
            exc_info=(exc_type, exc, tb),
        )
        self._trigger_fatal(f"{exc_type.__name__}: {exc}")

    def _handle_thread_uncaught(self, args: "threading.ExceptHookArgs") -> None:
        if args.exc_type is SystemExit:
            return
        logger.critical(
            "Uncaught exception in thread",
            extra={
                "thread_name": getattr(args.thread, "name", None),
                "error": str(args.exc_value),
                "error_type": args.exc_type.__name__,
            },
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        self._trigger_fatal(f"{args.exc_type.__name__}: {args.exc_value}")

    def _trigger_fatal(self, reason: str) -> None:
        self.exit_code = EXIT_FAILURE
        if self.fatal_reason is None:
            self.fatal_reason = reason

        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.fatal.set)


# ============================================================================
# Supervisor
# ============================================================================


@dataclass
class SupervisorSettings:
    token: str
    handler_locations: List[str]
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 3001
    webhook_secret: str = ""
    max_concurrent_servers: int = 6
    environment: str = "production"
    version: str = "1.0.0"
    monitor_interval_seconds: float = 60
    cleanup_interval_seconds: float = 3600

    @classmethod
    def from_config(cls) -> "SupervisorSettings":
        return cls(
            token=Config.DISCORD_BOT_TOKEN,
            handler_locations=list(Config.HANDLER_LOCATIONS),
            webhook_host=Config.WEBHOOK_HOST,
            webhook_port=Config.WEBHOOK_PORT,
            webhook_secret=Config.WEBHOOK_SECRET,
            max_concurrent_servers=Config.MAX_CONCURRENT_SERVERS,
            environment=Config.ENVIRONMENT,
            version=Config.BOT_VERSION,
            monitor_interval_seconds=Config.SERVER_MONITOR_INTERVAL_SECONDS,
            cleanup_interval_seconds=Config.CODE_CLEANUP_INTERVAL_SECONDS,
        )


ConnectionFactory = Callable[[HandlerRegistry], Any]
ControlPlaneFactory = Callable[[ControlPlaneState], ControlPlane]

LOGIN_ERRORS = (discord.LoginFailure, discord.HTTPException, aiohttp.ClientError, OSError)


class Supervisor:
    """
    Owns the connection, the control plane and the background services for
    one process run.

    Example
    -------
    >>> supervisor = Supervisor(SupervisorSettings.from_config(), queries=queries)
    >>> exit_code = await supervisor.run()
    """

    def __init__(
        self,
        settings: SupervisorSettings,
        *,
        queries: Optional[StatsQueries] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        control_plane_factory: Optional[ControlPlaneFactory] = None,
        notify_handler: Optional[NotifyHandler] = None,
        monitor_service: Optional[ServerMonitorService] = None,
        cleanup_service: Optional[CodeCleanupService] = None,
        started_at: Optional[float] = None,
    ) -> None:
        self.settings = settings
        # Monotonic clock reading for /health uptime; process start when given
        self.started_at = time.monotonic() if started_at is None else started_at
        self.queries = queries or StatsQueries.unavailable()

        self._connection_factory: ConnectionFactory = connection_factory or (
            lambda registry: BeaconBot(registry)
        )
        self._control_plane_factory: ControlPlaneFactory = control_plane_factory or (
            lambda state: ControlPlane(
                state, host=settings.webhook_host, port=settings.webhook_port
            )
        )
        self._notify_handler = notify_handler or handle_notify_bot

        self.monitor_service = monitor_service or ServerMonitorService(
            self.queries,
            max_concurrent=settings.max_concurrent_servers,
            interval_seconds=settings.monitor_interval_seconds,
        )
        self.cleanup_service = cleanup_service or CodeCleanupService(
            self.queries, interval_seconds=settings.cleanup_interval_seconds
        )

        self.policy = FailurePolicy()
        self.http_lifeline = HttpLifeline.IDLE
        self.connection_lifeline = ConnectionLifeline.IDLE

        self.registry: Optional[HandlerRegistry] = None
        self.connection: Optional[Any] = None
        self.control_plane: Optional[ControlPlane] = None

        self._stop_requested = asyncio.Event()
        self._gateway_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def request_shutdown(self) -> None:
        """Ask for an orderly stop with exit code 0 (SIGTERM)."""
        logger.info("Shutdown requested")
        self._stop_requested.set()

    async def run(self) -> int:
        """Run until the process should exit; returns the exit code."""
        self.policy.install(asyncio.get_running_loop())
        exit_code = EXIT_FAILURE

        try:
            exit_code = await self._run()
        finally:
            await self._teardown()
            self.policy.uninstall()
            logger.info("Supervisor exiting", extra={"exit_code": exit_code})

        return exit_code

    # ------------------------------------------------------------------ #
    # Startup sequence
    # ------------------------------------------------------------------ #

    async def _run(self) -> int:
        try:
            self.registry = discover(self.settings.handler_locations)
        except HandlerDiscoveryError as exc:
            logger.critical("Handler discovery failed", extra={"error": exc.to_dict()})
            return EXIT_FAILURE

        self.connection = self._connection_factory(self.registry)
        bind(self.registry, self.connection)

        state = ControlPlaneState(
            connection=self.connection,
            queries=self.queries,
            notify_handler=self._notify_handler,
            webhook_secret=self.settings.webhook_secret,
            max_concurrent_servers=self.settings.max_concurrent_servers,
            environment=self.settings.environment,
            version=self.settings.version,
            started_at=self.started_at,
        )
        self.control_plane = self._control_plane_factory(state)

        try:
            await self.control_plane.start()
        except (ControlPlaneStartupError, OSError) as exc:
            self.http_lifeline = HttpLifeline.FAILED
            logger.critical(
                "Control plane could not start",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return EXIT_FAILURE
        self.http_lifeline = HttpLifeline.LISTENING

        try:
            await self._login()
        except PlatformAuthenticationError as exc:
            self.connection_lifeline = ConnectionLifeline.FAILED
            logger.critical("Failed to login to Discord", extra={"error": exc.to_dict()})
            return EXIT_FAILURE
        self.connection_lifeline = ConnectionLifeline.READY

        self.monitor_service.start(self.connection)
        self.cleanup_service.start()

        self._gateway_task = asyncio.create_task(
            self.connection.connect(reconnect=True), name="discord-gateway"
        )
        return await self._supervise(self._gateway_task)

    async def _login(self) -> None:
        self.connection_lifeline = ConnectionLifeline.AUTHENTICATING

        token = self.settings.token
        if not token:
            raise PlatformAuthenticationError("DISCORD_BOT_TOKEN is not set")

        try:
            await self.connection.login(token)
        except LOGIN_ERRORS as exc:
            raise PlatformAuthenticationError(str(exc) or type(exc).__name__, exc) from exc

        logger.info("✓ Logged in to Discord")

    async def _supervise(self, gateway: "asyncio.Task[None]") -> int:
        fatal = asyncio.create_task(self.policy.fatal.wait(), name="failure-policy")
        stop = asyncio.create_task(self._stop_requested.wait(), name="stop-request")
        waiters = {gateway, fatal, stop}

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (fatal, stop):
                if not task.done():
                    task.cancel()
            await asyncio.gather(fatal, stop, return_exceptions=True)

        if fatal in done or self.policy.exit_code != EXIT_OK:
            logger.critical(
                "Stopping after fatal fault",
                extra={"reason": self.policy.fatal_reason},
            )
            return EXIT_FAILURE

        if stop in done:
            return EXIT_OK

        exc = gateway.exception()
        if exc is not None:
            logger.critical(
                "Gateway session ended with an error",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return EXIT_FAILURE

        logger.info("Gateway session closed")
        return EXIT_OK

    # ------------------------------------------------------------------ #
    # Teardown
    # ------------------------------------------------------------------ #

    async def _teardown(self) -> None:
        steps: List[tuple[str, Callable[[], Any]]] = [
            ("server monitor", self.monitor_service.stop),
            ("code cleanup", self.cleanup_service.stop),
            ("gateway", self._stop_gateway),
            ("event handlers", self._drain_handlers),
            ("control plane", self._stop_control_plane),
        ]

        for name, step in steps:
            try:
                await step()
            except Exception as exc:
                logger.error(
                    "Error during teardown",
                    extra={"step": name, "error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

    async def _stop_gateway(self) -> None:
        connection = self.connection
        if connection is not None and not connection.is_closed():
            await connection.close()

        task = self._gateway_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _drain_handlers(self) -> None:
        if self.connection is not None:
            await self.connection.event_bus.drain()

    async def _stop_control_plane(self) -> None:
        if self.control_plane is not None:
            await self.control_plane.stop()
