"""Presence events for session subscribers.

Sockets self-report the session and user they belong to; the notifier only
enriches broadcasts with what the store knows about that user.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..repositories import participants as participants_repo
from .signaling import SignalingConnection, SignalingManager

logger = logging.getLogger(__name__)

EVENT_USER_JOINED = "user-joined"
EVENT_USER_LEFT = "user-left"
EVENT_SESSION_ENDED = "session-ended"


class PresenceNotifier:
    """Relay membership and lifecycle events to sockets subscribed to a session."""

    def __init__(self, manager: SignalingManager, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.manager = manager
        self._session_factory = session_factory

    async def join_session(self, connection: SignalingConnection, session_id: str, user_id: str) -> None:
        await self.manager.join(session_id, connection)
        logger.info("User %s subscribed to session %s via %s", user_id, session_id, connection.connection_id)

        async with self._session_factory() as db:
            participant = await participants_repo.get_active(db, session_id, user_id)

        payload: dict[str, Any]
        if participant is not None:
            payload = {
                "userId": participant.user_id,
                "userName": participant.user_name,
                "role": participant.role.value,
                "socketId": connection.connection_id,
            }
        else:
            # Socket may announce itself before the join request is persisted.
            payload = {"userId": user_id, "socketId": connection.connection_id}

        await self.manager.emit(session_id, EVENT_USER_JOINED, payload, exclude=connection.connection_id)

    async def leave_session(self, connection: SignalingConnection, session_id: str, user_id: str) -> None:
        await self.manager.leave(session_id, connection.connection_id)
        logger.info("User %s unsubscribed from session %s", user_id, session_id)

        async with self._session_factory() as db:
            participant = await participants_repo.get_latest(db, session_id, user_id)

        payload: dict[str, Any] = {"userId": user_id, "socketId": connection.connection_id}
        if participant is not None:
            payload["userName"] = participant.user_name

        await self.manager.emit(session_id, EVENT_USER_LEFT, payload, exclude=connection.connection_id)

    async def disconnect(self, connection_id: str) -> None:
        rooms = await self.manager.disconnect(connection_id)
        logger.info("Connection %s closed; removed from %d session(s)", connection_id, len(rooms))

    async def session_ended(self, session_id: str, ended_by: str) -> int:
        return await self.manager.emit(
            session_id,
            EVENT_SESSION_ENDED,
            {"sessionId": session_id, "endedBy": ended_by},
        )
