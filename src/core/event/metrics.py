"""
EventMetrics and EventMetricsRecorder for the Beacon EventBus.

Purpose
-------
Count emissions and subscriber failures per event name so that the
dispatch layer is observable without a debugger.

Design Decisions
----------------
- **Immutable snapshots**: EventMetrics is frozen; mutation goes through the
  recorder, which is owned by a single EventBus.
- **Recorder vs. snapshot**: callers only ever see copies.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventMetrics:
    """
    Point-in-time view of EventBus counters.

    Attributes
    ----------
    events_emitted:
        Event name -> number of emissions.
    subscriber_errors:
        Event name -> number of subscriber invocations that raised.
    total_subscriptions:
        Subscriptions currently registered.
    """

    events_emitted: dict[str, int] = field(default_factory=dict)
    subscriber_errors: dict[str, int] = field(default_factory=dict)
    total_subscriptions: int = 0

    def get_summary(self) -> dict[str, Any]:
        """
        Summarise the counters.

        Examples
        --------
        >>> EventMetrics({"message": 100}, {"message": 5}, 3).get_summary()["error_rate"]
        5.0
        """
        total_events = sum(self.events_emitted.values())
        total_errors = sum(self.subscriber_errors.values())
        error_rate = (total_errors / max(1, total_events)) * 100.0

        return {
            "total_events_emitted": total_events,
            "events_by_type": dict(self.events_emitted),
            "total_errors": total_errors,
            "errors_by_event": dict(self.subscriber_errors),
            "total_subscriptions": self.total_subscriptions,
            "error_rate": round(error_rate, 2),
        }


class EventMetricsRecorder:
    """Mutable counters behind EventMetrics. Single event loop only."""

    def __init__(self) -> None:
        self._events_emitted: defaultdict[str, int] = defaultdict(int)
        self._subscriber_errors: defaultdict[str, int] = defaultdict(int)
        self._total_subscriptions: int = 0

    def record_emit(self, event_name: str) -> None:
        self._events_emitted[event_name] += 1

    def record_error(self, event_name: str) -> None:
        self._subscriber_errors[event_name] += 1

    def errors_for(self, event_name: str) -> int:
        return self._subscriber_errors.get(event_name, 0)

    @property
    def total_subscriptions(self) -> int:
        return self._total_subscriptions

    def adjust_subscription_count(self, delta: int) -> None:
        """Shift the subscription count; it never goes below 0."""
        self._total_subscriptions = max(0, self._total_subscriptions + delta)

    def reset_subscription_count(self) -> None:
        self._total_subscriptions = 0

    def snapshot(self) -> EventMetrics:
        return EventMetrics(
            events_emitted=dict(self._events_emitted),
            subscriber_errors=dict(self._subscriber_errors),
            total_subscriptions=self._total_subscriptions,
        )
