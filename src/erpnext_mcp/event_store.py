"""In-memory event store enabling ``Last-Event-ID`` resumption of SSE streams.

One store is created per HTTP session, so its history is dropped together
with the session.  Only the most recent ``max_events_per_stream`` events of
each stream are kept; a client resuming from an older event id gets no
replay.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from uuid import uuid4

from mcp.server.streamable_http import (
    EventCallback,
    EventId,
    EventMessage,
    EventStore,
    StreamId,
)
from mcp.types import JSONRPCMessage

logger = logging.getLogger(__name__)


@dataclass
class EventEntry:
    """One stored event."""

    event_id: EventId
    stream_id: StreamId
    message: JSONRPCMessage | None


class InMemoryEventStore(EventStore):
    """Bounded per-stream event history kept in process memory."""

    def __init__(self, max_events_per_stream: int = 100) -> None:
        self.max_events_per_stream = max_events_per_stream
        self._streams: dict[StreamId, deque[EventEntry]] = {}
        self._index: dict[EventId, EventEntry] = {}

    async def store_event(
        self, stream_id: StreamId, message: JSONRPCMessage | None
    ) -> EventId:
        """Record *message* on *stream_id* and return its new event id."""
        entry = EventEntry(event_id=uuid4().hex, stream_id=stream_id, message=message)

        events = self._streams.setdefault(
            stream_id, deque(maxlen=self.max_events_per_stream)
        )
        if len(events) == self.max_events_per_stream:
            self._index.pop(events[0].event_id, None)
        events.append(entry)
        self._index[entry.event_id] = entry
        return entry.event_id

    async def replay_events_after(
        self, last_event_id: EventId, send_callback: EventCallback
    ) -> StreamId | None:
        """Send every event stored after *last_event_id* on the same stream."""
        last = self._index.get(last_event_id)
        if last is None:
            logger.warning("Event ID %s not found in store", last_event_id)
            return None

        found = False
        for entry in self._streams.get(last.stream_id, ()):
            if found:
                if entry.message is not None:
                    await send_callback(EventMessage(entry.message, entry.event_id))
            elif entry.event_id == last_event_id:
                found = True
        return last.stream_id
