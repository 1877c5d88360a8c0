"""Event emitters for node agents."""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "container.created",
    "container.started",
    "container.stopped",
    "container.removed",
    "container.resumed",
    "node.restarted",
    "node.rebooted",
    "storage.archived",
    "attributes.updated",
    "state.updated",
    "agent.fault",
}


@dataclass(frozen=True)
class NodeEvent:
    """Something an agent did to a node."""

    event_type: str
    hostname: str
    detail: str = ""
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, str]:
        return {
            "event_type": self.event_type,
            "hostname": self.hostname,
            "detail": self.detail,
            "occurred_at": self.occurred_at.isoformat(),
        }


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[NodeEvent]) -> None:
        """Emit one or more events."""
        pass


def _validate(event: NodeEvent) -> None:
    if event.event_type not in ALLOWED_EVENTS:
        raise ValueError(f"Invalid event type: {event.event_type}")
    if not event.hostname:
        raise ValueError("Event must have hostname")


class LoggingEventEmitter(EventEmitter):
    """Writes events to the log."""

    def emit(self, events: Iterable[NodeEvent]) -> None:
        for event in events:
            _validate(event)
            logger.info(f"[EVENT] {event.event_type} | node={event.hostname} {event.detail}".rstrip())


class RecordingEventEmitter(EventEmitter):
    """Keeps the most recent events per hostname in memory."""

    def __init__(self, max_events_per_node: int = 100):
        self._max = max_events_per_node
        self._events: Dict[str, Deque[NodeEvent]] = {}
        self._lock = threading.Lock()

    def emit(self, events: Iterable[NodeEvent]) -> None:
        with self._lock:
            for event in events:
                _validate(event)
                recent = self._events.setdefault(event.hostname, deque(maxlen=self._max))
                recent.append(event)

    def events_for(self, hostname: str, limit: Optional[int] = None) -> List[NodeEvent]:
        with self._lock:
            recent = list(self._events.get(hostname, ()))
        if limit is not None:
            recent = recent[-limit:]
        return recent

    def event_types(self, hostname: str) -> List[str]:
        return [e.event_type for e in self.events_for(hostname)]


class MultiEventEmitter(EventEmitter):
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[NodeEvent]) -> None:
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[NodeEvent]) -> None:
        pass
