"""
Beacon Logging Subsystem

Purpose
-------
One logging stack shared by the gateway connection, the control plane, the
dispatcher and the background services. Everything runs on a single event
loop, so no handler may do blocking I/O on the emitting task.

Responsibilities
----------------
- setup_logging(): route the root logger through a bounded queue to a
  listener thread that owns the real handlers (console, optional daily file).
- ContextFilter: stamp every record with the ambient operation context
  (user_id, guild_id, command, correlation_id, component, operation).
- LogContext / set_log_context(): scope that context to a block of code or
  to the current task.
- get_logging_health(): queue depth and drop counters.
- shutdown_logging(): flush the queue and restore a bare root logger.

Architecture Notes
------------------
- Settings are read from Config once, when setup_logging() runs.
- Context lives in a ContextVar, so each asyncio task sees its own copy.
  Nested LogContexts inherit the outer fields.
- The filter sits on the queue handler: context is captured on the emitting
  task, before the record crosses into the listener thread.
- A full queue drops the record and counts it; logging never blocks.
- Structured fields go through ``extra={...}`` and end up under ``extra`` in
  JSON output. Do not use LogRecord attribute names (``module``, ``name``,
  ``thread``...) as extra keys.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.config import Config

CONTEXT_FIELDS = (
    "user_id",
    "guild_id",
    "command",
    "correlation_id",
    "component",
    "operation",
)

UNSET = "N/A"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = (
    "discord",
    "discord.http",
    "discord.gateway",
    "discord.client",
    "aiohttp.access",
    "aiohttp.server",
    "asyncio",
    "sqlalchemy.engine",
)

_operation_context: ContextVar[Dict[str, Any]] = ContextVar("beacon_log_context", default={})


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    environment: str
    json_output: bool
    colors: bool
    to_file: bool
    logs_dir: Path
    file_name: str = "beacon.json.log"
    file_backups: int = 7
    queue_size: int = 10_000
    console_format: str = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
    date_format: str = "%H:%M:%S"

    @classmethod
    def from_config(cls) -> "LoggingSettings":
        environment = str(Config.ENVIRONMENT).lower()
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        if not isinstance(level, int):
            level = logging.INFO

        # LOG_JSON unset means JSON in production, text elsewhere
        json_output = Config.LOG_JSON if Config.LOG_JSON is not None else Config.is_production()

        return cls(
            level=level,
            environment=environment,
            json_output=bool(json_output),
            colors=not json_output and Config.LOG_COLORS and sys.stdout.isatty(),
            to_file=bool(Config.LOG_TO_FILE),
            logs_dir=Path(Config.LOGS_DIR),
        )


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the task's operation context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _operation_context.get()

        for field in CONTEXT_FIELDS:
            # An explicit extra={...} value wins over the ambient context
            if getattr(record, field, None) is None:
                setattr(record, field, context.get(field) or UNSET)

        if record.component == UNSET:
            record.component = record.name.split(".", 1)[0]

        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)

        return True


class ColoredFormatter(logging.Formatter):
    RESET = "\033[0m"
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().formatMessage(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON document per record: core fields, context, extras."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        context = {
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) not in (None, UNSET)
        }
        if context:
            document["context"] = context

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            document["extra"] = extra

        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            document["exception"] = record.exc_text

        return json.dumps(document, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


class _LoggingState:
    def __init__(self) -> None:
        self.initialized = False
        self.queue: Optional["queue.Queue[logging.LogRecord]"] = None
        self.listener: Optional[QueueListener] = None
        self.records_enqueued = 0
        self.records_dropped = 0
        self.listener_errors = 0


_state = _LoggingState()


class DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.records_dropped += 1
            return
        _state.records_enqueued += 1


class CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.listener_errors += 1
        sys.stderr.write(f"beacon: log handler failed for record from {record.name}\n")


def _console_handler(settings: LoggingSettings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if settings.json_output:
        formatter: logging.Formatter = JSONFormatter()
    elif settings.colors:
        formatter = ColoredFormatter(settings.console_format, settings.date_format)
    else:
        formatter = logging.Formatter(settings.console_format, settings.date_format)
    handler.setFormatter(formatter)
    return handler


def _file_handler(settings: LoggingSettings) -> logging.Handler:
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        settings.logs_dir / settings.file_name,
        when="midnight",
        backupCount=settings.file_backups,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Setup / Teardown
# ============================================================================


def setup_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Install the queue-backed logging stack on the root logger. Idempotent."""
    if _state.initialized:
        return

    settings = settings or LoggingSettings.from_config()

    outputs: List[logging.Handler] = [_console_handler(settings)]
    if settings.to_file:
        outputs.append(_file_handler(settings))
    for output in outputs:
        output.setLevel(settings.level)

    _state.queue = queue.Queue(settings.queue_size)
    _state.records_enqueued = 0
    _state.records_dropped = 0
    _state.listener_errors = 0
    _state.listener = CountingQueueListener(_state.queue, *outputs, respect_handler_level=True)
    _state.listener.start()

    entry = DroppingQueueHandler(_state.queue)
    entry.setLevel(settings.level)
    entry.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(settings.level)
    root.addHandler(entry)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, settings.level))

    _state.initialized = True

    logging.getLogger(__name__).info(
        "✓ Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": logging.getLevelName(settings.level),
            "json_output": settings.json_output,
            "log_file": str(settings.logs_dir / settings.file_name) if settings.to_file else None,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue, close every handler and detach them from the root logger."""
    if not _state.initialized:
        return

    logging.getLogger(__name__).info("Logging shutting down")

    listener, _state.listener = _state.listener, None
    if listener is not None:
        listener.stop()
        for output in listener.handlers:
            output.close()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    _state.queue = None
    _state.initialized = False


def get_logging_health() -> LoggingHealth:
    log_queue = _state.queue
    return LoggingHealth(
        initialized=_state.initialized,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.records_enqueued,
        records_dropped=_state.records_dropped,
        listener_errors=_state.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def _context_fields(
    user_id: Optional[int],
    guild_id: Optional[int],
    command: Optional[str],
    component: Optional[str],
    operation: Optional[str],
    correlation_id: Optional[str],
    extra: Dict[str, Any],
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "user_id": str(user_id) if user_id is not None else None,
        "guild_id": str(guild_id) if guild_id is not None else None,
        "command": command,
        "component": component,
        "operation": operation,
        "correlation_id": correlation_id,
        **extra,
    }
    return {key: value for key, value in fields.items() if value is not None}


class LogContext:
    """
    Scope context fields to a block of (possibly async) code.

    Fields merge over the enclosing context. A fresh correlation id is
    generated unless one is given or inherited.

    Example
    -------
    >>> async with LogContext(user_id=1, guild_id=2, command="/ping"):
    ...     logger.info("Running command")
    """

    def __init__(
        self,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        command: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.fields = _context_fields(
            user_id, guild_id, command, component, operation, correlation_id, extra
        )
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        merged = {**_operation_context.get(), **self.fields}
        merged.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _operation_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    user_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    command: Optional[str] = None,
    component: Optional[str] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Merge fields into the current task's context until it is cleared."""
    fields = _context_fields(
        user_id, guild_id, command, component, operation, correlation_id, extra
    )
    _operation_context.set({**_operation_context.get(), **fields})


def get_log_context() -> Dict[str, Any]:
    return dict(_operation_context.get())


def clear_log_context() -> None:
    _operation_context.set({})
