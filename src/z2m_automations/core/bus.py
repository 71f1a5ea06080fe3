"""
Event Bus implementation for state-change routing.

The Event Bus is a simple, synchronous dispatcher for host state-change events.
Subscribers receive an explicit Subscription handle that is later passed back
to unsubscribe().
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Get current UTC time (for default factory)."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class EntityRef:
    """
    A resolved host entity (device or group).

    Attributes:
        id: Identifier the entity was resolved from (IEEE address, group id, ...)
        name: Friendly name, used for bucket lookup and command topics
    """

    id: str
    name: str


@dataclass
class StateChangeEvent:
    """
    A state change reported by the host for one entity.

    Attributes:
        entity: The entity whose state changed
        update: Fields present in this specific update
        from_state: Full state snapshot before the update
        to_state: Full state snapshot after the update
        timestamp: When the event occurred
    """

    entity: EntityRef
    update: Dict[str, Any] = field(default_factory=dict)
    from_state: Dict[str, Any] = field(default_factory=dict)
    to_state: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)


EventHandler = Callable[[StateChangeEvent], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by EventBus.subscribe()."""

    id: int
    handler: EventHandler


class EventBus:
    """
    Simple, synchronous event bus for state-change events.

    Handlers are wrapped in try/except to prevent one bad subscriber from
    breaking delivery to the others.
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._subscriptions: List[Subscription] = []
        self._ids = itertools.count(1)

    def subscribe(self, handler: EventHandler) -> Subscription:
        """
        Subscribe to state-change events.

        Args:
            handler: Callable that receives StateChangeEvent objects

        Returns:
            Subscription handle to pass to unsubscribe()
        """
        subscription = Subscription(id=next(self._ids), handler=handler)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed handler {_handler_name(handler)} (#{subscription.id})")
        return subscription

    def publish(self, event: StateChangeEvent) -> None:
        """
        Publish an event to all subscribers.

        Handlers are called synchronously, in subscription order.

        Args:
            event: The event to publish
        """
        logger.debug(f"Publishing state change for {event.entity.name}")

        for subscription in list(self._subscriptions):
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler {_handler_name(subscription.handler)} "
                    f"for entity {event.entity.name}: {e}",
                    exc_info=True,
                )

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Remove a subscription.

        Args:
            subscription: Handle returned by subscribe()

        Returns:
            True if the subscription was active, False otherwise
        """
        before = len(self._subscriptions)
        self._subscriptions = [s for s in self._subscriptions if s.id != subscription.id]
        removed = len(self._subscriptions) != before
        if removed:
            logger.debug(f"Unsubscribed handler {_handler_name(subscription.handler)}")
        return removed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))
