"""Unit tests for EventBus — thread-safe pub/sub for registry notifications.

Tests subscribe/unsubscribe, prefix filters, queue overflow (drop oldest)
and concurrent publishing.
"""
from __future__ import annotations

import queue
import threading

import pytest

from fieldsketch.comms.event_bus import EventBus, drain


@pytest.mark.unit
class TestEventBusBasics:
    """Core subscribe/publish/unsubscribe functionality."""

    def test_subscribe_returns_queue(self):
        bus = EventBus()
        q = bus.subscribe()
        assert isinstance(q, queue.Queue)

    def test_publish_delivers_to_subscriber(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.publish("field_created", {"field_id": "field_1"})
        msg = q.get_nowait()
        assert msg["type"] == "field_created"
        assert msg["data"]["field_id"] == "field_1"

    def test_publish_without_data(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.publish("ping")
        msg = q.get_nowait()
        assert msg["type"] == "ping"
        assert "data" not in msg

    def test_multiple_subscribers(self):
        bus = EventBus()
        q1 = bus.subscribe()
        q2 = bus.subscribe()
        bus.publish("selection_changed", {"selected_id": None})
        assert q1.get_nowait()["type"] == "selection_changed"
        assert q2.get_nowait()["type"] == "selection_changed"
        assert bus.subscriber_count == 2

    def test_unsubscribe_stops_delivery(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.unsubscribe(q)
        bus.publish("after_unsub")
        assert q.empty()
        assert bus.subscriber_count == 0

    def test_unsubscribe_nonexistent_is_safe(self):
        bus = EventBus()
        bus.unsubscribe(queue.Queue())  # Should not raise

    def test_prefix_filter(self):
        bus = EventBus()
        q = bus.subscribe("field_")
        bus.publish("field_created", {"field_id": "a"})
        bus.publish("metrics_updated", {"owner_id": "a"})
        bus.publish("field_deleted", {"field_id": "a"})
        assert [m["type"] for m in drain(q)] == ["field_created", "field_deleted"]

    def test_drain_empty(self):
        assert drain(EventBus().subscribe()) == []


@pytest.mark.unit
class TestEventBusOverflow:
    """Queue overflow behavior — drop oldest message when full."""

    def test_default_maxsize(self):
        q = EventBus().subscribe()
        assert q.maxsize == 1000

    def test_overflow_drops_oldest(self):
        bus = EventBus(maxsize=10)
        q = bus.subscribe()
        for i in range(10):
            bus.publish("metrics_updated", {"seq": i})
        assert q.full()

        bus.publish("field_updated", {"seq": 10})

        messages = drain(q)
        assert messages[0]["data"]["seq"] == 1
        assert messages[-1]["type"] == "field_updated"


@pytest.mark.unit
class TestEventBusThreadSafety:
    """Concurrent publish from multiple threads."""

    def test_concurrent_publish(self):
        bus = EventBus()
        q = bus.subscribe()
        errors = []

        def publisher(thread_id: int):
            try:
                for i in range(50):
                    bus.publish("metrics_updated", {"tid": thread_id, "seq": i})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=publisher, args=(t,)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert len(drain(q)) == 200

    def test_concurrent_subscribe_unsubscribe(self):
        bus = EventBus()
        errors = []

        def churn():
            try:
                for _ in range(20):
                    q = bus.subscribe()
                    bus.publish("churn")
                    bus.unsubscribe(q)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=churn) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert bus.subscriber_count == 0
