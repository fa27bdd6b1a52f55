"""
Beacon EventBus: async pub/sub for platform events.

Purpose
-------
Deliver every event the Discord connection dispatches to the handlers bound
to it, with once-vs-repeating semantics and per-subscriber error isolation.

Responsibilities
----------------
- Register/unregister subscribers with a SubscriptionMode
- emit(): fire-and-forget delivery, used by the connection's dispatch hook
- publish(): awaited delivery returning subscriber results, used by tests
  and internal callers that need completion
- Metrics collection and introspection

Design Decisions
----------------
- **Instance-based**: one bus per connection; tests build their own.
- **Registration order**: subscribers of one event start in the order they
  subscribed. Different events are independent.
- **Error isolation**: a raising subscriber is logged and counted; it never
  deregisters siblings and never propagates to the emitter.
- **Arguments forwarded as-is**: callbacks receive the positional arguments
  of the emission, unmodified.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from src.core.event.metrics import EventMetrics, EventMetricsRecorder
from src.core.event.registry import SubscriptionRegistry
from src.core.event.scheduler import SubscriberScheduler
from src.core.event.types import CallbackType, Subscription, SubscriptionMode
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Event bus owned by a connection.

    Thread Safety
    -------------
    Single event loop only. Subscription changes are synchronous and atomic
    between awaits.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("ready", on_ready, mode=SubscriptionMode.ONCE)
    >>> bus.emit("ready")
    """

    def __init__(
        self,
        registry: Optional[SubscriptionRegistry] = None,
        scheduler: Optional[SubscriberScheduler] = None,
        metrics: Optional[EventMetricsRecorder] = None,
        *,
        enable_metrics: bool = True,
    ) -> None:
        self._registry = registry or SubscriptionRegistry()
        self._scheduler = scheduler or SubscriberScheduler()
        self._metrics = metrics or EventMetricsRecorder()
        self._metrics_enabled = enable_metrics

        logger.debug(
            "EventBus initialized",
            extra={"metrics_enabled": self._metrics_enabled},
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        mode: SubscriptionMode = SubscriptionMode.REPEATING,
        identifier: Optional[str] = None,
    ) -> str:
        """
        Subscribe a callback to an event.

        Parameters
        ----------
        event_name:
            Platform event name without the ``on_`` prefix ("ready", "message").
        callback:
            Async or sync callable taking the event's positional arguments.
        mode:
            ONCE or REPEATING delivery.
        identifier:
            Optional explicit identifier. Generated (and unique) if None.

        Returns
        -------
        str:
            The subscription identifier, for unsubscribe().

        Raises
        ------
        TypeError:
            If callback is not callable.
        """
        if not callable(callback):
            raise TypeError(f"Event subscriber for '{event_name}' must be callable")

        subscription = Subscription.from_callback(
            event_name=event_name,
            callback=callback,
            mode=mode,
            identifier=identifier,
        )
        self._registry.add(event_name, subscription)

        if self._metrics_enabled:
            self._metrics.adjust_subscription_count(1)

        logger.debug(
            "EventBus: subscribed",
            extra={
                "event_name": event_name,
                "subscriber_id": subscription.identifier,
                "mode": mode.value,
            },
        )
        return subscription.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        """Remove a subscription. Returns True if one was removed."""
        removed = self._registry.remove(event_name, identifier)

        if removed:
            if self._metrics_enabled:
                self._metrics.adjust_subscription_count(-1)
            logger.debug(
                "EventBus: unsubscribed",
                extra={"event_name": event_name, "subscriber_id": identifier},
            )

        return removed

    def clear(self) -> None:
        """Remove every subscription."""
        total = self._registry.clear_all()

        if self._metrics_enabled:
            self._metrics.reset_subscription_count()

        logger.info(
            "EventBus: cleared all subscriptions",
            extra={"previous_subscription_count": total},
        )

    # ------------------------------------------------------------------ #
    # Delivery API
    # ------------------------------------------------------------------ #

    def _take(self, event_name: str) -> list[Subscription]:
        if self._metrics_enabled:
            self._metrics.record_emit(event_name)

        subscriptions = self._registry.extract_for_event(event_name)

        if self._metrics_enabled:
            pruned = sum(1 for sub in subscriptions if sub.once)
            if pruned:
                self._metrics.adjust_subscription_count(-pruned)

        return subscriptions

    def emit(self, event_name: str, *args: Any) -> list[asyncio.Task[Any]]:
        """
        Deliver an event without waiting for subscribers.

        Each subscriber runs in its own task, started in registration order.
        Must be called from inside the running loop.

        Returns
        -------
        list[asyncio.Task]:
            The subscriber tasks (empty if nobody is subscribed).
        """
        subscriptions = self._take(event_name)
        if not subscriptions:
            return []

        return self._scheduler.spawn(
            event_name=event_name,
            args=args,
            subscriptions=subscriptions,
            metrics=self._metrics if self._metrics_enabled else None,
            logger=logger,
        )

    async def publish(self, event_name: str, *args: Any) -> list[Any]:
        """
        Deliver an event and wait for every subscriber.

        Returns
        -------
        list[Any]:
            Subscriber results in registration order; None for a subscriber
            that raised.
        """
        subscriptions = self._take(event_name)

        return await self._scheduler.gather(
            event_name=event_name,
            args=args,
            subscriptions=subscriptions,
            metrics=self._metrics if self._metrics_enabled else None,
            logger=logger,
        )

    async def drain(self) -> None:
        """Cancel in-flight subscriber tasks. Used at teardown."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Metrics & Introspection
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> Optional[EventMetrics]:
        if not self._metrics_enabled:
            return None
        return self._metrics.snapshot()

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        if metrics is None:
            return {}
        return metrics.get_summary()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        """
        Number of subscriptions, for one event or in total.

        Examples
        --------
        >>> bus.get_listener_count("message")
        2
        """
        if event_name:
            return self._registry.get_count_for_event(event_name)
        return self._registry.get_total_count()

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()

    def get_pending_task_count(self) -> int:
        return self._scheduler.get_background_task_count()
