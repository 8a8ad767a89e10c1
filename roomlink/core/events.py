"""
In-process event bus for real-time notifications.

Services receive an ``EventPublisher`` through their constructor and call
``publish`` after their write has committed. Delivery is best effort: a
failing subscriber is logged and never propagates into the request.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Protocol, Tuple

from roomlink.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Channel names
ADMIN_CHANNEL = "admin"
STAFF_CHANNEL = "staff"


def host_channel(host_id: str) -> str:
    return f"host:{host_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


@dataclass
class Event:
    name: str
    channels: Tuple[str, ...]
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=utcnow)


EventHandler = Callable[[Event], None]


class EventPublisher(Protocol):
    def publish(self, channels: Iterable[str], name: str, payload: Dict[str, Any]) -> None:
        ...


class EventBus:
    """
    Fan events out to subscribers registered per event name.

    ``"*"`` subscribes to every event.
    """

    WILDCARD = "*"

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, name: str, handler: EventHandler) -> None:
        self._handlers.setdefault(name, []).append(handler)
        logger.debug(f"Registered handler for event type: {name}")

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, channels: Iterable[str], name: str, payload: Dict[str, Any]) -> None:
        event = Event(name=name, channels=tuple(channels), payload=payload)
        handlers = self._handlers.get(name, []) + self._handlers.get(self.WILDCARD, [])

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Event handler failed for {name}",
                    extra={"event_channels": list(event.channels)},
                )


def log_event(event: Event) -> None:
    logger.info(
        f"Event {event.name} published",
        extra={"event_channels": list(event.channels), "event_payload": event.payload},
    )


def create_event_bus() -> EventBus:
    bus = EventBus()
    bus.subscribe(EventBus.WILDCARD, log_event)
    return bus
