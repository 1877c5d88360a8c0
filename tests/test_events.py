#tests\test_events.py

"""Test event emitters."""

import logging

import pytest

from node_admin.core.events import (
    LoggingEventEmitter,
    MultiEventEmitter,
    NodeEvent,
    NullEventEmitter,
    RecordingEventEmitter,
)


class TestRecordingEventEmitter:
    """Test in-memory event history."""

    def test_records_per_node(self):
        recorder = RecordingEventEmitter()

        recorder.emit([
            NodeEvent("container.created", "node1.example.com"),
            NodeEvent("container.created", "node2.example.com"),
            NodeEvent("container.resumed", "node1.example.com"),
        ])

        assert recorder.event_types("node1.example.com") == ["container.created", "container.resumed"]
        assert recorder.event_types("node3.example.com") == []

    def test_keeps_most_recent(self):
        recorder = RecordingEventEmitter(max_events_per_node=2)

        for event_type in ("container.created", "container.started", "container.stopped"):
            recorder.emit([NodeEvent(event_type, "node1.example.com")])

        assert recorder.event_types("node1.example.com") == ["container.started", "container.stopped"]

    def test_limit(self):
        recorder = RecordingEventEmitter()
        recorder.emit([NodeEvent("container.created", "node1.example.com"), NodeEvent("container.resumed", "node1.example.com")])

        events = recorder.events_for("node1.example.com", limit=1)

        assert [e.event_type for e in events] == ["container.resumed"]

    def test_rejects_unknown_event(self):
        with pytest.raises(ValueError):
            RecordingEventEmitter().emit([NodeEvent("container.exploded", "node1.example.com")])

    def test_rejects_missing_hostname(self):
        with pytest.raises(ValueError):
            RecordingEventEmitter().emit([NodeEvent("container.created", "")])


class TestOtherEmitters:
    """Test fan-out, logging and null emitters."""

    def test_multi_emitter(self):
        first, second = RecordingEventEmitter(), RecordingEventEmitter()

        MultiEventEmitter([first, second, NullEventEmitter()]).emit(
            NodeEvent("storage.archived", "node1.example.com", "/archive/node1") for _ in range(1)
        )

        assert first.event_types("node1.example.com") == ["storage.archived"]
        assert second.event_types("node1.example.com") == ["storage.archived"]

    def test_logging_emitter(self, caplog):
        with caplog.at_level(logging.INFO, logger="node_admin.core.events"):
            LoggingEventEmitter().emit([NodeEvent("state.updated", "node1.example.com", "ready")])

        assert "[EVENT] state.updated | node=node1.example.com ready" in caplog.text

    def test_to_dict(self):
        event = NodeEvent("agent.fault", "node1.example.com", "image not found")

        data = event.to_dict()

        assert data["event_type"] == "agent.fault"
        assert data["detail"] == "image not found"
        assert data["occurred_at"] == event.occurred_at.isoformat()
