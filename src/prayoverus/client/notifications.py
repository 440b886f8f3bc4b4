"""Notification listener — turns /ws frames into cache invalidations.

Learn: The server's events are hints, not state. On any event we care
about, the listener marks the affected lists stale and lets the next
reader refetch; it never patches a list from the payload. That's what
makes the best-effort, unordered fan-out good enough: a lost or reordered
event only delays a refresh.

The listener is transport-agnostic: feed it raw text frames from whatever
WebSocket client the platform provides (see `listen`).
"""

import json
from collections import defaultdict
from typing import Any, AsyncIterable, Callable, Optional

import structlog

from prayoverus.client.cache import PUBLIC_PRAYERS, QueryCache, comments_key
from prayoverus.events.types import ALL_EVENT_TYPES, NEW_COMMENT

logger = structlog.get_logger()

Handler = Callable[[str, dict], None]


class NotificationListener:
    def __init__(self, cache: QueryCache):
        self.cache = cache
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self.received = 0

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Call handler(type, data) after the cache has been invalidated."""
        self._handlers[event_type].append(handler)

    def handle(self, raw: str) -> Optional[str]:
        """Process one frame. Returns the event type, or None if ignored."""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("notifications.invalid_frame", raw=raw[:200])
            return None
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.warning("notifications.malformed_event", raw=raw[:200])
            return None

        event_type = message["type"]
        data: Any = message.get("data")
        if not isinstance(data, dict):
            data = {}
        if event_type not in ALL_EVENT_TYPES:
            logger.debug("notifications.unknown_event", type=event_type)
            return None

        self.received += 1
        stale = [PUBLIC_PRAYERS]
        if event_type == NEW_COMMENT and data.get("prayerId"):
            stale.append(comments_key(data["prayerId"]))
        self.cache.invalidate(*stale)

        for handler in self._handlers.get(event_type, []):
            handler(event_type, data)
        return event_type

    async def listen(self, frames: AsyncIterable[str]) -> int:
        """Consume frames until the stream ends. Returns events handled."""
        handled = 0
        async for raw in frames:
            if self.handle(raw) is not None:
                handled += 1
        return handled
