"""
SubscriptionRegistry: storage and lookup for EventBus subscribers.

Purpose
-------
Keep the subscribers of each event name in registration order and hand them
to the bus at emission time, pruning ONCE subscriptions as they are taken.

Design Decisions
----------------
- **No async/await**: asyncio's loop is single-threaded, so dictionary
  mutations are atomic between awaits. No locking.
- **Registration order**: subscribers run in the order they were added;
  there is no priority sorting.
- **Atomic once-pruning**: extract_for_event() returns the current
  subscribers and removes ONCE entries in the same synchronous step.
- **Duplicates allowed by default**: two handlers may bind the same callback
  to the same event and both must run.
"""

from __future__ import annotations

from src.core.event.types import Subscription


class SubscriptionRegistry:
    """
    Registry of event subscribers keyed by event name.

    Not thread-safe; all calls must come from the owning event loop.

    Examples
    --------
    >>> registry = SubscriptionRegistry()
    >>> registry.add("message", sub)
    True
    >>> [s.identifier for s in registry.extract_for_event("message")]
    ['handlers.echo@message#1']
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    # ------------------------------------------------------------------ #
    # Modification
    # ------------------------------------------------------------------ #

    def add(
        self,
        event_name: str,
        subscription: Subscription,
        *,
        allow_duplicates: bool = True,
    ) -> bool:
        """
        Append a subscription for an event.

        Returns
        -------
        bool:
            False only when ``allow_duplicates`` is False and a subscription
            with the same identifier already exists for the event.
        """
        subscriptions = self._subscriptions.setdefault(event_name, [])

        if not allow_duplicates and any(
            existing.identifier == subscription.identifier
            for existing in subscriptions
        ):
            return False

        subscriptions.append(subscription)
        return True

    def remove(self, event_name: str, identifier: str) -> bool:
        """Remove a subscription by identifier. Returns True if one was removed."""
        subscriptions = self._subscriptions.get(event_name)
        if not subscriptions:
            return False

        kept = [sub for sub in subscriptions if sub.identifier != identifier]
        removed = len(kept) < len(subscriptions)

        if kept:
            self._subscriptions[event_name] = kept
        else:
            del self._subscriptions[event_name]

        return removed

    def clear_all(self) -> int:
        """Remove every subscription and return how many there were."""
        total = self.get_total_count()
        self._subscriptions.clear()
        return total

    # ------------------------------------------------------------------ #
    # Lookup & Once-Removal
    # ------------------------------------------------------------------ #

    def extract_for_event(self, event_name: str) -> list[Subscription]:
        """
        Collect the subscribers of an event and prune ONCE entries.

        The returned list is a snapshot in registration order. Because the
        pruning happens before any subscriber runs, a second emission that
        starts while the first is still in flight never sees a ONCE
        subscriber again.
        """
        subscriptions = self._subscriptions.get(event_name)
        if not subscriptions:
            return []

        result = list(subscriptions)
        kept = [sub for sub in subscriptions if not sub.once]

        if kept:
            if len(kept) != len(subscriptions):
                self._subscriptions[event_name] = kept
        else:
            del self._subscriptions[event_name]

        return result

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_count_for_event(self, event_name: str) -> int:
        return len(self._subscriptions.get(event_name, []))

    def get_total_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    def get_all_event_keys(self) -> list[str]:
        return sorted(self._subscriptions.keys())
