# ABOUTME: Event bus for pub/sub messaging between the builder service and its observers
# ABOUTME: Lets the CLI, logging and tests react to draft and finalization events

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Any
import logging


logger = logging.getLogger(__name__)


class EventType(Enum):
    """
    Types of events emitted during character creation.
    """
    # Draft lifecycle
    DRAFT_CREATED = "draft_created"
    DRAFT_UPDATED = "draft_updated"
    CHARACTER_FINALIZED = "character_finalized"

    # Grants made while building
    FEATURE_GRANTED = "feature_granted"
    FEATURE_CHOICE_MADE = "feature_choice_made"
    PROFICIENCY_GRANTED = "proficiency_granted"
    ITEM_ACQUIRED = "item_acquired"

    # Creation sessions
    SESSION_STARTED = "session_started"
    SESSION_EXPIRED = "session_expired"


@dataclass
class Event:
    """
    A builder event with associated data.
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"Event({self.type.name}, data={self.data})"


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Central event bus for pub/sub messaging.

    The service emits events without knowing who is listening. A handler
    that raises is logged and skipped; the remaining handlers still run and
    the emitting operation is never affected.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The type of event to subscribe to
            handler: Function to call when event is emitted
        """
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)

    def emit(self, event: Event) -> None:
        """
        Emit an event to all subscribers.

        Args:
            event: The event to emit
        """
        from dnd_builder.utils.logging_config import get_logging_config
        logging_config = get_logging_config()
        if logging_config and logging_config.debug_enabled:
            logging_config.log_event(event.type.name, event.data)

        for handler in list(self._subscribers.get(event.type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event.type.value}: {e}",
                    exc_info=True
                )

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers.get(event_type, []))

    def clear_all(self) -> None:
        """Remove all subscribers from all event types."""
        self._subscribers.clear()
