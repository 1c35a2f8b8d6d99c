"""
Event Bus

Typed in-process publish/subscribe. Each topic (DomainEventType) carries a
fixed payload type; subscribers receive events in publish order and each
subscription can be cancelled through the handle returned by ``subscribe``.

Delivery is synchronous: ``publish`` returns after every subscriber has run.
A failing subscriber is logged and skipped; it never stops delivery to the
others.
"""
from typing import Callable, Dict, List, Optional

from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.types.domain_events import DomainEvent, DomainEventType, PAYLOAD_TYPES


EventHandler = Callable[[DomainEvent], None]


class Subscription:
    """Handle returned by ``EventBus.subscribe``."""

    def __init__(self, bus: "EventBus", event_type: DomainEventType, handler: EventHandler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop delivery to this handler. Calling twice is a no-op."""
        if not self._active:
            return
        self._active = False
        self._bus._remove(self)


class EventBus:
    """
    Typed publish/subscribe bus shared by the engine components.
    """

    def __init__(self, logger: Optional[LoggerService] = None):
        self._subscriptions: Dict[DomainEventType, List[Subscription]] = {}
        self._logger = logger or get_logger()
        self._published: Dict[DomainEventType, int] = {}

    def subscribe(self, event_type: DomainEventType, handler: EventHandler) -> Subscription:
        """
        Register ``handler`` for one topic.

        Returns:
            Subscription handle; call ``cancel()`` to unsubscribe.
        """
        subscription = Subscription(self, event_type, handler)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def publish(self, event: DomainEvent) -> int:
        """
        Deliver an event to every active subscriber of its topic.

        Raises:
            TypeError: If the payload type does not match the topic.

        Returns:
            Number of handlers that completed without error.
        """
        expected = PAYLOAD_TYPES.get(event.event_type)
        if expected is not None and not isinstance(event.payload, expected):
            raise TypeError(
                f"{event.event_type.value} expects {expected.__name__}, "
                f"got {type(event.payload).__name__}"
            )

        self._published[event.event_type] = self._published.get(event.event_type, 0) + 1

        delivered = 0
        # Copy so handlers may (un)subscribe while we iterate
        for subscription in list(self._subscriptions.get(event.event_type, ())):
            if not subscription.active:
                continue
            try:
                subscription.handler(event)
                delivered += 1
            except Exception as e:
                self._logger.system(
                    "event_handler_error",
                    {
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "event_type": event.event_type.value,
                    },
                    level="ERROR",
                )
        return delivered

    def subscriber_count(self, event_type: DomainEventType) -> int:
        return len(self._subscriptions.get(event_type, ()))

    def get_statistics(self) -> Dict[str, int]:
        """Published event counts per topic."""
        return {topic.value: count for topic, count in self._published.items()}

    def _remove(self, subscription: Subscription) -> None:
        handlers = self._subscriptions.get(subscription.event_type, [])
        if subscription in handlers:
            handlers.remove(subscription)
