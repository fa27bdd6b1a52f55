"""
Error handling helper for EventBus subscribers.

Every subscriber failure goes through handle_subscriber_error so that it is
logged with the same fields and counted exactly once. The helper never
raises: one failing subscriber must not affect its siblings.
"""

from __future__ import annotations

from logging import Logger
from typing import Optional

from src.core.event.metrics import EventMetricsRecorder
from src.core.event.types import Subscription


def handle_subscriber_error(
    *,
    logger: Logger,
    event_name: str,
    subscription: Subscription,
    exc: BaseException,
    metrics: Optional[EventMetricsRecorder],
) -> None:
    """
    Log a subscriber failure and update metrics.

    Parameters
    ----------
    logger:
        Logger to write the ERROR record to.
    event_name:
        Event that was being delivered.
    subscription:
        The subscriber that raised.
    exc:
        The raised exception; its traceback is attached to the record.
    metrics:
        Recorder to update, or None when metrics are disabled.
    """
    if metrics is not None:
        metrics.record_error(event_name)

    logger.error(
        "Event subscriber failed",
        extra={
            "event_name": event_name,
            "subscriber_id": subscription.identifier,
            "mode": subscription.mode.value,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
