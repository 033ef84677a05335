"""
Event system for the Orbit template engine.

Audit notifications are fire-and-forget: listeners run after a mutation has
succeeded and a failing listener never blocks or reverses that mutation.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events in Orbit."""
    CREATED = "created"
    UPDATED = "updated"
    ARCHIVED = "archived"
    RESTORED = "restored"
    REORDERED = "reordered"
    DELETED = "deleted"
    LINKED = "linked"
    UNLINKED = "unlinked"
    MUTATION_FAILED = "mutation.failed"


@dataclass
class Event:
    """Base event class."""
    type: EventType
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditEvent(Event):
    """Notification for the audit-logging collaborator."""
    entity: str = ""
    entity_id: str = ""
    old_value: Any = None
    new_value: Any = None


class EventListener(ABC):
    """Base class for event listeners."""

    @abstractmethod
    def handle(self, event: Event) -> None:
        """Handle an event.

        Args:
            event: The event to handle.
        """
        pass

    @property
    @abstractmethod
    def subscribed_events(self) -> List[EventType]:
        """Return list of event types this listener subscribes to."""
        pass


class EventBus:
    """
    Event bus for publishing and subscribing to events.

    One bus per OrbitCore; pass it to the managers that publish.
    """

    def __init__(self) -> None:
        self._listeners: Dict[EventType, List[EventListener]] = {}

    def subscribe(self, listener: EventListener) -> None:
        """Subscribe a listener to events.

        Args:
            listener: The listener to subscribe.
        """
        for event_type in listener.subscribed_events:
            self._listeners.setdefault(event_type, [])
            if listener not in self._listeners[event_type]:
                self._listeners[event_type].append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        """Unsubscribe a listener from all events.

        Args:
            listener: The listener to unsubscribe.
        """
        for event_type in self._listeners:
            if listener in self._listeners[event_type]:
                self._listeners[event_type].remove(listener)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribed listeners.

        Args:
            event: The event to publish.
        """
        listeners = self._listeners.get(event.type, [])
        for listener in list(listeners):
            try:
                listener.handle(event)
            except Exception as e:
                # Log error but don't stop other listeners
                logger.warning(
                    "Listener %s failed on %s",
                    listener.__class__.__name__,
                    event.type.value,
                    extra={"error": str(e)},
                )

    def audit(
        self,
        event_type: EventType,
        entity: str,
        entity_id: str,
        old_value: Any = None,
        new_value: Any = None,
    ) -> None:
        """Publish an AuditEvent."""
        self.publish(
            AuditEvent(
                type=event_type,
                entity=entity,
                entity_id=entity_id,
                old_value=old_value,
                new_value=new_value,
            )
        )

    def clear(self) -> None:
        """Clear all listeners (useful for testing)."""
        self._listeners.clear()


AUDITED_EVENTS = [
    EventType.CREATED,
    EventType.UPDATED,
    EventType.ARCHIVED,
    EventType.RESTORED,
    EventType.REORDERED,
    EventType.DELETED,
    EventType.LINKED,
    EventType.UNLINKED,
]


class AuditLogListener(EventListener):
    """
    Writes audit events to the ``orbit.audit`` logger.

    Delivery to an external audit store is out of scope; this listener is the
    hand-off point.
    """

    def __init__(self, audit_logger: Optional[logging.Logger] = None) -> None:
        self.logger = audit_logger or logging.getLogger("orbit.audit")

    @property
    def subscribed_events(self) -> List[EventType]:
        return AUDITED_EVENTS

    def handle(self, event: Event) -> None:
        if not isinstance(event, AuditEvent):
            return
        self.logger.info(
            "%s %s %s",
            event.entity,
            event.type.value,
            event.entity_id,
            extra={"entity": event.entity, "operation": event.type.value},
        )
