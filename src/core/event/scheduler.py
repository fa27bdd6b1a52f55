"""
SubscriberScheduler: execution of EventBus subscribers.

Purpose
-------
Run the subscribers of one emission with per-subscriber error isolation.

Execution Model
---------------
- spawn(): one task per subscriber, created in registration order (asyncio
  starts ready tasks FIFO, so start order matches registration order).
  Not awaited. Tasks are tracked in a set until they finish so they are not
  garbage-collected mid-flight.
- gather(): the same per-subscriber coroutines, awaited together; results
  come back in registration order with None for a failed subscriber.

Sync callbacks are called inline on the loop. Handlers are expected to be
coroutines; a sync callback is a cheap hook, not a place for blocking work.
"""

from __future__ import annotations

import asyncio
import inspect
from logging import Logger
from typing import Any, Optional, Sequence

from src.core.event.errors import handle_subscriber_error
from src.core.event.metrics import EventMetricsRecorder
from src.core.event.types import Subscription


class SubscriberScheduler:
    """
    Executes subscribers for the EventBus.

    Examples
    --------
    >>> scheduler = SubscriberScheduler()
    >>> tasks = scheduler.spawn(
    ...     event_name="message",
    ...     args=(message,),
    ...     subscriptions=subs,
    ...     metrics=recorder,
    ...     logger=logger,
    ... )
    """

    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def spawn(
        self,
        *,
        event_name: str,
        args: tuple[Any, ...],
        subscriptions: Sequence[Subscription],
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
    ) -> list[asyncio.Task[Any]]:
        """
        Start one tracked task per subscriber and return the tasks.

        Must be called from inside the running loop.
        """
        loop = asyncio.get_running_loop()
        tasks: list[asyncio.Task[Any]] = []

        for subscription in subscriptions:
            task = loop.create_task(
                self._run_subscriber(
                    subscription=subscription,
                    event_name=event_name,
                    args=args,
                    metrics=metrics,
                    logger=logger,
                ),
                name=f"eventbus-{event_name}-{subscription.identifier}",
            )
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
            tasks.append(task)

        return tasks

    async def gather(
        self,
        *,
        event_name: str,
        args: tuple[Any, ...],
        subscriptions: Sequence[Subscription],
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
    ) -> list[Any]:
        """Run every subscriber concurrently and wait for all of them."""
        if not subscriptions:
            return []

        return list(
            await asyncio.gather(
                *[
                    self._run_subscriber(
                        subscription=sub,
                        event_name=event_name,
                        args=args,
                        metrics=metrics,
                        logger=logger,
                    )
                    for sub in subscriptions
                ]
            )
        )

    async def _run_subscriber(
        self,
        *,
        subscription: Subscription,
        event_name: str,
        args: tuple[Any, ...],
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
    ) -> Any:
        """
        Run a single subscriber with error isolation.

        Returns the subscriber's result, or None if it raised.
        """
        try:
            logger.debug(
                "EventBus: running subscriber",
                extra={
                    "event_name": event_name,
                    "subscriber_id": subscription.identifier,
                },
            )

            result = subscription.callback(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

        except asyncio.CancelledError:
            raise
        except Exception as exc:
            handle_subscriber_error(
                logger=logger,
                event_name=event_name,
                subscription=subscription,
                exc=exc,
                metrics=metrics,
            )
            return None

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)

    async def drain(self) -> None:
        """Cancel every in-flight subscriber task and wait for them to settle."""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
