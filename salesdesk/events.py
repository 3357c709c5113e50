from __future__ import annotations

import uuid
from collections import defaultdict, deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from salesdesk.context import get_correlation_id

EnvelopeHandler = Callable[[dict[str, Any]], None]

ENVELOPE_VERSION = 1
RECENT_EVENTS_LIMIT = 1000


class EventBus:
    """Synchronous in-process dispatch of event envelopes by event type."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EnvelopeHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EnvelopeHandler) -> None:
        handlers = self._handlers[event_type]
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: EnvelopeHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def dispatch(self, envelope: dict[str, Any]) -> None:
        for handler in list(self._handlers.get(envelope["event_type"], [])):
            handler(envelope)


event_bus = EventBus()
# Most recent envelopes, newest last.
published_events: deque[dict[str, Any]] = deque(maxlen=RECENT_EVENTS_LIMIT)


def build_envelope(event_type: str, actor_user_id: uuid.UUID | str | None, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": str(actor_user_id) if actor_user_id is not None else None,
        "version": ENVELOPE_VERSION,
        "payload": payload,
    }


def publish(envelope: dict[str, Any]) -> None:
    envelope.setdefault("correlation_id", get_correlation_id())
    published_events.append(envelope)
    event_bus.dispatch(envelope)
