"""
Event system for Beacon.

Each connection owns an EventBus; platform dispatches are forwarded to it and
delivered to bound handlers with once-vs-repeating semantics.
"""

from .bus import EventBus
from .metrics import EventMetrics, EventMetricsRecorder
from .registry import SubscriptionRegistry
from .scheduler import SubscriberScheduler
from .types import CallbackType, Subscription, SubscriptionMode

__all__ = [
    "EventBus",
    "EventMetrics",
    "EventMetricsRecorder",
    "SubscriptionRegistry",
    "SubscriberScheduler",
    "Subscription",
    "SubscriptionMode",
    "CallbackType",
]
