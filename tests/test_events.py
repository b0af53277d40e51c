# ABOUTME: Unit tests for the event bus system
# ABOUTME: Tests pub/sub functionality, event types, and handler error isolation

import logging
from typing import List

from dnd_builder.utils.events import Event, EventBus, EventType
from dnd_builder.utils import logging_config


class TestEvent:
    """Test the Event class"""

    def test_event_creation(self):
        """Test creating an event"""
        event = Event(
            type=EventType.CHARACTER_FINALIZED,
            data={'character_id': 'c1', 'owner_id': 'user-1'}
        )

        assert event.type == EventType.CHARACTER_FINALIZED
        assert event.data['character_id'] == 'c1'

    def test_event_with_no_data(self):
        """Test creating an event without data"""
        event = Event(type=EventType.DRAFT_CREATED)

        assert event.data == {}

    def test_event_string_representation(self):
        """Test event string representation"""
        event = Event(type=EventType.ITEM_ACQUIRED, data={'item': 'shield'})

        assert "ITEM_ACQUIRED" in str(event)


class TestEventBus:
    """Test the EventBus class"""

    def setup_method(self):
        """Set up test fixtures"""
        self.bus = EventBus()
        self.received_events: List[Event] = []

    def handler(self, event: Event):
        self.received_events.append(event)

    def test_subscribe_and_emit(self):
        """Test that subscribers receive events of their type only"""
        self.bus.subscribe(EventType.DRAFT_UPDATED, self.handler)

        self.bus.emit(Event(EventType.DRAFT_UPDATED, {'character_id': 'c1'}))
        self.bus.emit(Event(EventType.DRAFT_CREATED, {'character_id': 'c2'}))

        assert len(self.received_events) == 1
        assert self.received_events[0].data['character_id'] == 'c1'

    def test_multiple_subscribers(self):
        """Test that every subscriber is called"""
        other: List[Event] = []
        self.bus.subscribe(EventType.FEATURE_GRANTED, self.handler)
        self.bus.subscribe(EventType.FEATURE_GRANTED, other.append)

        self.bus.emit(Event(EventType.FEATURE_GRANTED))

        assert len(self.received_events) == 1
        assert len(other) == 1
        assert self.bus.subscriber_count(EventType.FEATURE_GRANTED) == 2

    def test_unsubscribe(self):
        """Test that an unsubscribed handler is not called"""
        self.bus.subscribe(EventType.SESSION_STARTED, self.handler)
        self.bus.unsubscribe(EventType.SESSION_STARTED, self.handler)
        self.bus.unsubscribe(EventType.SESSION_EXPIRED, self.handler)

        self.bus.emit(Event(EventType.SESSION_STARTED))

        assert self.received_events == []

    def test_failing_handler_is_isolated(self, caplog):
        """Test that one handler raising does not stop the others"""
        def broken(event: Event):
            raise RuntimeError("handler failed")

        self.bus.subscribe(EventType.CHARACTER_FINALIZED, broken)
        self.bus.subscribe(EventType.CHARACTER_FINALIZED, self.handler)

        with caplog.at_level(logging.ERROR):
            self.bus.emit(Event(EventType.CHARACTER_FINALIZED))

        assert len(self.received_events) == 1
        assert "handler failed" in caplog.text

    def test_clear_all(self):
        """Test removing every subscriber"""
        self.bus.subscribe(EventType.DRAFT_CREATED, self.handler)
        self.bus.clear_all()

        assert self.bus.subscriber_count(EventType.DRAFT_CREATED) == 0

    def test_debug_logging_of_events(self, monkeypatch):
        """Test that emitted events are logged when debug logging is on"""
        logged = []

        class FakeConfig:
            debug_enabled = True

            def log_event(self, event_type, data):
                logged.append((event_type, data))

        monkeypatch.setattr(logging_config, "_logging_config", FakeConfig())

        self.bus.emit(Event(EventType.PROFICIENCY_GRANTED, {'key': 'shields'}))

        assert logged == [("PROFICIENCY_GRANTED", {'key': 'shields'})]
