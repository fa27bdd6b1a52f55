"""
Handler Registry and Discovery for Beacon

Purpose
-------
Discover command and event handler modules from configured package locations
and register them for dispatch, with structured logging of every decision.

Responsibilities
----------------
- Enumerate the direct submodules of each location in sorted order
- Classify each candidate as a command, an event, or invalid
- Register commands by name (last write wins) and events in discovery order
- Log one record per loaded handler and a summary per scan

Non-Responsibilities
--------------------
- Handler bodies (owned by the handler modules)
- Binding events to the connection (handled by the dispatcher)
- Deploying command schemas to Discord

Architecture Notes
------------------
- Discovery is a one-time, synchronous startup scan. There is no reload.
- A broken candidate is skipped with a WARNING; a location that cannot be
  enumerated raises HandlerDiscoveryError and aborts startup.
- Subpackages are not descended into; nested locations (for example
  ``src.commands.admin``) are listed explicitly.
"""

from __future__ import annotations

import importlib
import pkgutil
import time
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Dict, List, Optional, Sequence

from src.bot.handlers import (
    CommandHandler,
    CommandSchema,
    EventHandler,
    normalize_event_name,
)
from src.core.exceptions import HandlerDiscoveryError, HandlerValidationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Registry
# ============================================================================


class HandlerRegistry:
    """
    Name -> command mapping plus an ordered list of event handlers.

    Written during discovery, read-only afterwards.
    """

    def __init__(self) -> None:
        self._commands: Dict[str, CommandHandler] = {}
        self._events: List[EventHandler] = []

    def register_command(self, handler: CommandHandler) -> None:
        existing = self._commands.get(handler.name)
        if existing is not None:
            logger.warning(
                "Command name collision; later module wins",
                extra={
                    "command_name": handler.name,
                    "replaced_module": existing.module,
                    "winning_module": handler.module,
                },
            )
        self._commands[handler.name] = handler

    def register_event(self, handler: EventHandler) -> None:
        self._events.append(handler)

    def get_command(self, name: str) -> Optional[CommandHandler]:
        return self._commands.get(name)

    def events_for(self, name: str) -> List[EventHandler]:
        return [handler for handler in self._events if handler.name == name]

    @property
    def commands(self) -> Dict[str, CommandHandler]:
        return dict(self._commands)

    @property
    def events(self) -> List[EventHandler]:
        return list(self._events)

    @property
    def command_count(self) -> int:
        return len(self._commands)

    @property
    def event_count(self) -> int:
        return len(self._events)

    def command_names(self) -> List[str]:
        return sorted(self._commands)

    def command_payloads(self) -> List[Dict[str, Any]]:
        """Schemas of every registered command, ready for Discord's bulk upsert."""
        return [self._commands[name].schema.to_payload() for name in self.command_names()]


# ============================================================================
# Discovery
# ============================================================================


@dataclass
class LoadResult:
    """Outcome for a single candidate module."""

    module: str
    kind: str  # "command", "event" or "skipped"
    name: Optional[str]
    duration_ms: float
    error_type: Optional[str] = None
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind != "skipped"


class HandlerDiscovery:
    """
    Scans handler locations into a HandlerRegistry.

    Example
    -------
    >>> discovery = HandlerDiscovery(["src.commands", "src.events"])
    >>> registry = discovery.run()
    >>> registry.get_command("ping")
    CommandHandler(...)
    """

    def __init__(self, locations: Sequence[str]) -> None:
        self.locations: List[str] = list(locations)
        self.load_results: List[LoadResult] = []

    def run(self) -> HandlerRegistry:
        """
        Discover every location in order.

        Raises
        ------
        HandlerDiscoveryError
            If any location cannot be enumerated.
        """
        start_time = time.perf_counter()
        registry = HandlerRegistry()
        self.load_results = []

        for location in self.locations:
            package = self._import_location(location)

            module_names = sorted(
                f"{location}.{info.name}"
                for info in pkgutil.iter_modules(package.__path__)
                if not info.ispkg
            )

            logger.debug(
                "Scanning handler location",
                extra={"location": location, "candidates": len(module_names)},
            )

            for module_name in module_names:
                self.load_results.append(self._load_candidate(module_name, registry))

        stats = self._build_stats(start_time, registry)
        self._log_summary(stats)
        return registry

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @staticmethod
    def _import_location(location: str) -> ModuleType:
        try:
            package = importlib.import_module(location)
        except Exception as exc:
            logger.critical(
                "Handler location cannot be imported",
                extra={
                    "location": location,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise HandlerDiscoveryError(location, f"{type(exc).__name__}: {exc}") from exc

        if not hasattr(package, "__path__"):
            logger.critical(
                "Handler location is a module, not a package",
                extra={"location": location},
            )
            raise HandlerDiscoveryError(location, "not a package (no submodule path)")

        return package

    def _load_candidate(self, module_name: str, registry: HandlerRegistry) -> LoadResult:
        start_time = time.perf_counter()

        try:
            module = importlib.import_module(module_name)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Skipping handler module that failed to import",
                extra={
                    "handler_module": module_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return LoadResult(
                module=module_name,
                kind="skipped",
                name=None,
                duration_ms=duration_ms,
                error_type=type(exc).__name__,
                reason=str(exc),
            )

        try:
            handler = self._classify(module_name, module)
        except HandlerValidationError as exc:
            logger.warning(
                "Skipping invalid handler module",
                extra={"handler_module": module_name, "reason": exc.reason},
            )
            return LoadResult(
                module=module_name,
                kind="skipped",
                name=None,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                error_type="HandlerValidationError",
                reason=exc.reason,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000

        if isinstance(handler, CommandHandler):
            registry.register_command(handler)
            logger.info(
                "Loaded command: %s",
                handler.name,
                extra={"handler_module": module_name, "duration_ms": round(duration_ms, 2)},
            )
            return LoadResult(module_name, "command", handler.name, duration_ms)

        registry.register_event(handler)
        logger.info(
            "Loaded event: %s",
            handler.name,
            extra={
                "handler_module": module_name,
                "once": handler.once,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return LoadResult(module_name, "event", handler.name, duration_ms)

    @staticmethod
    def _classify(module_name: str, module: ModuleType) -> CommandHandler | EventHandler:
        """
        Turn a module into a handler record.

        Raises
        ------
        HandlerValidationError
            If the module has no identity field or no callable ``execute``.
        """
        execute = getattr(module, "execute", None)

        if hasattr(module, "data"):
            schema = CommandSchema.from_data(getattr(module, "data"))
            if schema is None:
                raise HandlerValidationError(module_name, "'data' has no command name")
            if not callable(execute):
                raise HandlerValidationError(module_name, "command has no callable 'execute'")
            return CommandHandler(schema=schema, execute=execute, module=module_name)

        raw_name = getattr(module, "name", None)
        if isinstance(raw_name, str) and raw_name.strip():
            event_name = normalize_event_name(raw_name)
            if not event_name:
                raise HandlerValidationError(module_name, f"event name {raw_name!r} is empty")
            if not callable(execute):
                raise HandlerValidationError(module_name, "event has no callable 'execute'")
            return EventHandler(
                name=event_name,
                execute=execute,
                once=bool(getattr(module, "once", False)),
                module=module_name,
            )

        raise HandlerValidationError(
            module_name, "neither 'data' (command) nor a string 'name' (event)"
        )

    def _build_stats(self, start_time: float, registry: HandlerRegistry) -> Dict[str, Any]:
        skipped = [r for r in self.load_results if not r.success]

        stats: Dict[str, Any] = {
            "total_time_ms": (time.perf_counter() - start_time) * 1000,
            "locations": len(self.locations),
            "discovered": len(self.load_results),
            "commands": registry.command_count,
            "events": registry.event_count,
            "skipped": len(skipped),
        }

        if skipped:
            breakdown: Dict[str, int] = {}
            for result in skipped:
                etype = result.error_type or "Unknown"
                breakdown[etype] = breakdown.get(etype, 0) + 1
            stats["error_breakdown"] = breakdown

        return stats

    def _log_summary(self, stats: Dict[str, Any]) -> None:
        logger.info(
            "Handler discovery complete: %d commands, %d events, %d skipped (%.0fms)",
            stats["commands"],
            stats["events"],
            stats["skipped"],
            stats["total_time_ms"],
            extra={k: v for k, v in stats.items() if k != "error_breakdown"},
        )

        if "error_breakdown" in stats:
            for error_type, count in stats["error_breakdown"].items():
                logger.warning("  • skipped %s: %d", error_type, count)


def discover(locations: Sequence[str]) -> HandlerRegistry:
    """Scan ``locations`` and return the populated registry."""
    return HandlerDiscovery(locations).run()
