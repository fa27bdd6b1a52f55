"""
Periodic background service base.

Purpose
-------
Shared lifecycle for the maintenance services: start exactly once, run an
isolated tick loop as an asyncio Task, stop by cancelling it.

Architecture Notes
------------------
- A failing tick is logged and counted; the loop keeps running.
- A second start() is a logged no-op.
- stop() is idempotent.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from src.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceMetrics:
    """Runtime counters for one periodic service."""

    ticks: int = 0
    tick_failures: int = 0
    last_tick: Optional[float] = None
    last_error: Optional[str] = None


class PeriodicService(ABC):
    """
    Base class; subclasses implement ``tick()``.

    Example
    -------
    >>> class Heartbeat(PeriodicService):
    ...     async def tick(self) -> None:
    ...         logger.info("alive")
    >>> Heartbeat("heartbeat", 30).start()
    True
    """

    def __init__(self, name: str, interval_seconds: float) -> None:
        self.name = name
        self.interval_seconds = float(interval_seconds)
        self.metrics = ServiceMetrics()
        self._task: Optional[asyncio.Task[None]] = None
        self._started = False
        self._is_shutting_down = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _launch(self) -> bool:
        if self._started:
            logger.warning("%s already started; ignoring", self.name, extra={"service": self.name})
            return False

        self._started = True
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"service-{self.name}"
        )
        logger.info(
            "✓ %s started",
            self.name,
            extra={"service": self.name, "interval_seconds": self.interval_seconds},
        )
        return True

    def start(self) -> bool:
        """Start the tick loop. Returns False if it was already started."""
        return self._launch()

    async def _loop(self) -> None:
        while not self._is_shutting_down:
            try:
                await self._run_tick()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.debug("%s loop cancelled", self.name)
                break

    async def _run_tick(self) -> None:
        self.metrics.ticks += 1
        self.metrics.last_tick = time.time()

        try:
            await self.tick()
        except Exception as exc:
            self.metrics.tick_failures += 1
            self.metrics.last_error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Error in %s tick",
                self.name,
                extra={
                    "service": self.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    @abstractmethod
    async def tick(self) -> None:
        """One unit of periodic work. Exceptions are logged by the loop."""

    async def stop(self) -> None:
        if self._task is None:
            return

        self._is_shutting_down = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("%s stopped", self.name, extra={"service": self.name})
