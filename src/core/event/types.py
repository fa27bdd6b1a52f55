"""
Core Event Types for the Beacon EventBus.

Purpose
-------
Type definitions shared by the event system: subscription modes, callback
types and the immutable subscription record.

Design Decisions
----------------
- **Positional arguments, not payload dicts**: platform events carry the
  arguments the client library dispatches (a Message, a Guild, an
  Interaction...). Subscribers receive them unmodified and in order.
- **SubscriptionMode instead of a bool flag**: ONCE subscriptions are pruned
  from the registry before they run; REPEATING ones stay until teardown.
- **Unique identifiers**: several handlers may share a callback and an event
  name, so every subscription gets a sequence-numbered identifier unless the
  caller supplies one.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union


class SubscriptionMode(Enum):
    """
    Delivery mode of a subscription.

    ONCE:
        Delivered for the first emission only. Removed atomically at
        extraction time so concurrent emissions cannot deliver it twice.
    REPEATING:
        Delivered for every emission until unsubscribed.
    """

    ONCE = "once"
    REPEATING = "repeating"


# Async or sync callables taking the event's positional arguments
CallbackType = Union[
    Callable[..., Any],
    Callable[..., Awaitable[Any]],
]

_sequence = itertools.count(1)


@dataclass(slots=True, frozen=True)
class Subscription:
    """
    A registered event subscriber.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event's positional arguments.
    mode:
        SubscriptionMode controlling once-vs-repeating delivery.
    identifier:
        Unique string identifier used for unsubscription and logging.
    """

    callback: CallbackType
    mode: SubscriptionMode
    identifier: str

    @property
    def once(self) -> bool:
        return self.mode is SubscriptionMode.ONCE

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        mode: SubscriptionMode,
        identifier: Optional[str],
    ) -> Subscription:
        """
        Create a Subscription, generating an identifier when none is given.

        Examples
        --------
        >>> async def on_ready():
        ...     pass
        >>> sub = Subscription.from_callback("ready", on_ready, SubscriptionMode.ONCE, None)
        >>> sub.identifier  # doctest: +SKIP
        'mymodule.on_ready@ready#1'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}#{next(_sequence)}"

        return cls(callback=callback, mode=mode, identifier=identifier)
