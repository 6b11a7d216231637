"""In-memory subscription table for realtime session events."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Set

SendCallable = Callable[[dict], Awaitable[None]]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SignalingConnection:
    """Connection wrapper for realtime subscribers."""

    connection_id: str
    send: SendCallable


class SignalingManager:
    """Map session ids to subscribed connections and fan events out to them.

    Delivery is best effort: a connection that fails to receive a message is
    skipped, never retried.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, SignalingConnection]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def join(self, room: str, connection: SignalingConnection) -> list[str]:
        """Subscribe a connection to the room and return the other subscriber ids."""

        async with self._lock:
            subscribers = self._rooms.setdefault(room, {})
            subscribers[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set()).add(room)
            return [connection_id for connection_id in subscribers if connection_id != connection.connection_id]

    async def leave(self, room: str, connection_id: str) -> None:
        """Remove a connection from the room, cleaning up empty rooms."""

        async with self._lock:
            self._discard(room, connection_id)

    async def disconnect(self, connection_id: str) -> list[str]:
        """Drop the connection from every room it joined and return those rooms."""

        async with self._lock:
            rooms = sorted(self._memberships.get(connection_id, ()))
            for room in rooms:
                self._discard(room, connection_id)
            self._memberships.pop(connection_id, None)
        return rooms

    def subscribers(self, room: str) -> list[str]:
        return list(self._rooms.get(room, {}))

    def rooms_for(self, connection_id: str) -> list[str]:
        return sorted(self._memberships.get(connection_id, ()))

    async def broadcast(self, room: str, message: dict, *, exclude: str | None = None) -> int:
        """Send a message to every subscriber of the room except ``exclude``.

        Returns the number of connections the message was addressed to.
        """

        async with self._lock:
            targets = [
                connection
                for connection in self._rooms.get(room, {}).values()
                if connection.connection_id != exclude
            ]

        if not targets:
            return 0

        results = await asyncio.gather(*(connection.send(message) for connection in targets), return_exceptions=True)
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.debug("Dropping event for connection %s in %s: %s", connection.connection_id, room, result)
        return len(targets)

    async def emit(self, room: str, event: str, data: dict[str, Any], *, exclude: str | None = None) -> int:
        return await self.broadcast(room, {"event": event, "data": data}, exclude=exclude)

    def _discard(self, room: str, connection_id: str) -> None:
        subscribers = self._rooms.get(room)
        if subscribers is not None:
            subscribers.pop(connection_id, None)
            if not subscribers:
                self._rooms.pop(room, None)
        memberships = self._memberships.get(connection_id)
        if memberships is not None:
            memberships.discard(room)
            if not memberships:
                self._memberships.pop(connection_id, None)
