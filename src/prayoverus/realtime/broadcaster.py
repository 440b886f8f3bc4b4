"""Broadcaster — best-effort fan-out of {type, data} events to /ws sockets.

Learn: This is a polling-avoidance heuristic, not a reliable pub/sub system.
- Every open socket receives every event (no topics, no per-user routing)
- Sockets that are not open are skipped; nothing is queued for them
- A failed write drops the socket and is swallowed; the REST request that
  triggered the broadcast has already committed and must not fail because
  some phone went into a tunnel

The registry is an owned object (one per app, on app.state), not a module
global, so tests can run several independent instances side by side.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import structlog
from starlette.websockets import WebSocket, WebSocketState

logger = structlog.get_logger()


@dataclass(frozen=True)
class NotificationEvent:
    """Ephemeral event — created after a commit, dropped once written."""

    type: str
    data: dict[str, Any]

    def serialize(self) -> str:
        return json.dumps({"type": self.type, "data": self.data}, default=str)


def is_open(socket: WebSocket) -> bool:
    """A socket is eligible for broadcast only once accepted and not closed."""
    return (
        socket.client_state == WebSocketState.CONNECTED
        and socket.application_state == WebSocketState.CONNECTED
    )


class Broadcaster:
    """Registry of live sockets plus the broadcast operation."""

    def __init__(self) -> None:
        self._sockets: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._sockets)

    @property
    def sockets(self) -> frozenset[WebSocket]:
        return frozenset(self._sockets)

    def register(self, socket: WebSocket) -> None:
        self._sockets.add(socket)
        logger.info("ws.registered", connections=len(self._sockets))

    def unregister(self, socket: WebSocket) -> None:
        self._sockets.discard(socket)
        logger.info("ws.unregistered", connections=len(self._sockets))

    async def broadcast(self, event_type: str, data: dict[str, Any]) -> int:
        """Write one event to every open socket. Returns how many got it.

        Never raises. Writes run concurrently so one slow consumer doesn't
        hold up the rest; a socket whose write fails is unregistered.
        """
        event = NotificationEvent(type=event_type, data=data)
        try:
            message = event.serialize()
        except (TypeError, ValueError) as e:
            logger.error("broadcast.serialize_failed", type=event_type, error=str(e))
            return 0

        # Snapshot: connects/disconnects during the awaits below must not
        # mutate the set we're iterating.
        snapshot = list(self._sockets)
        targets = [s for s in snapshot if is_open(s)]
        if not targets:
            logger.debug("broadcast.no_listeners", type=event_type)
            return 0

        results = await asyncio.gather(
            *(s.send_text(message) for s in targets),
            return_exceptions=True,
        )

        delivered = 0
        for socket, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "broadcast.write_failed",
                    type=event_type,
                    error=repr(result),
                )
                self._sockets.discard(socket)
            else:
                delivered += 1

        logger.info(
            "broadcast.sent",
            type=event_type,
            delivered=delivered,
            skipped=len(snapshot) - len(targets),
            failed=len(targets) - delivered,
        )
        return delivered
