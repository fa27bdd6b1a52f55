"""
Infrastructure exceptions for Beacon.

Purpose
-------
Define the structured exception hierarchy for the orchestrator's own failure
modes: handler discovery, platform authentication, control
plane startup and database access. Business errors raised by individual
command or event bodies are not modelled here; they are isolated and logged
by the dispatcher.

Design Notes
------------
- All infrastructure exceptions inherit from `BeaconInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Fatal vs. non-fatal is encoded in severity: CRITICAL errors abort startup,
  WARNING errors are logged and the offending item skipped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"  # Handled, item skipped
    ERROR = "error"
    CRITICAL = "critical"  # Process cannot continue


class BeaconInfrastructureException(Exception):
    """
    Base exception for all Beacon infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise BeaconInfrastructureException(
        ...     "Control plane failed to bind",
        ...     {"host": "0.0.0.0", "port": 3001}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class HandlerDiscoveryError(BeaconInfrastructureException):
    """
    Raised when a handler location cannot be enumerated.

    Fatal: the registry is incomplete and startup must abort.

    Args:
        location: Dotted package name that was scanned
        reason: Why enumeration failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(
            f"Cannot enumerate handler location '{location}': {reason}",
            details={"location": location, "reason": reason},
            error_code="HANDLER_DISCOVERY_ERROR",
        )


class HandlerValidationError(BeaconInfrastructureException):
    """
    Raised when a candidate module is not a valid command or event handler.

    Non-fatal: discovery logs it and skips the module.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, module: str, reason: str) -> None:
        self.module = module
        self.reason = reason
        super().__init__(
            f"Invalid handler module '{module}': {reason}",
            details={"module": module, "reason": reason},
            error_code="HANDLER_INVALID",
        )


class PlatformAuthenticationError(BeaconInfrastructureException):
    """
    Raised when the platform connection cannot authenticate.

    Covers a missing token as well as a rejected login; the original
    client error, if any, is kept in ``original_error``.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, reason: str, original_error: Optional[Exception] = None) -> None:
        self.reason = reason
        self.original_error = original_error
        super().__init__(
            f"Platform login failed: {reason}",
            details={
                "reason": reason,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code="PLATFORM_AUTH_ERROR",
        )


class ControlPlaneStartupError(BeaconInfrastructureException):
    """Raised when the HTTP control plane cannot bind its listener."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, host: str, port: int, original_error: Exception) -> None:
        self.host = host
        self.port = port
        self.original_error = original_error
        super().__init__(
            f"Control plane failed to listen on {host}:{port}: {original_error}",
            details={
                "host": host,
                "port": port,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="CONTROL_PLANE_BIND_ERROR",
        )


class DatabaseError(BeaconInfrastructureException):
    """
    Raised when database operations fail.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )

