"""Realtime presence endpoint."""
from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy.exc import SQLAlchemyError

from ..services.presence import PresenceNotifier
from ..services.signaling import SignalingConnection

logger = logging.getLogger(__name__)

router = APIRouter()

JOIN_SESSION = "join-session"
LEAVE_SESSION = "leave-session"


@router.websocket("/ws")
async def presence_endpoint(websocket: WebSocket) -> None:
    """Subscribe to session presence events.

    Clients send ``{"event": "join-session" | "leave-session", "data": {"sessionId", "userId"}}``
    and receive ``user-joined``, ``user-left`` and ``session-ended`` events in the same envelope.
    The socket id is assigned here and announced in the ``connected`` event.
    """

    notifier: PresenceNotifier = websocket.app.state.presence
    connection_id = str(uuid4())
    await websocket.accept()

    connection = SignalingConnection(connection_id=connection_id, send=websocket.send_json)
    await websocket.send_json({"event": "connected", "data": {"socketId": connection_id}})

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Invalid JSON format")
                continue
            if not isinstance(message, dict):
                continue
            await _dispatch(notifier, connection, websocket, message)
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.disconnect(connection_id)


async def _dispatch(
    notifier: PresenceNotifier,
    connection: SignalingConnection,
    websocket: WebSocket,
    message: dict,
) -> None:
    event = message.get("event") or message.get("type")
    data = message.get("data") or {}
    if event not in (JOIN_SESSION, LEAVE_SESSION):
        logger.warning("Unknown realtime event %r from %s", event, connection.connection_id)
        await _send_error(websocket, f"Unknown event: {event}")
        return

    session_id = data.get("sessionId") if isinstance(data, dict) else None
    user_id = data.get("userId") if isinstance(data, dict) else None
    if not session_id or user_id in (None, ""):
        await _send_error(websocket, "sessionId and userId are required")
        return

    try:
        if event == JOIN_SESSION:
            await notifier.join_session(connection, str(session_id), str(user_id))
        else:
            await notifier.leave_session(connection, str(session_id), str(user_id))
    except (SQLAlchemyError, OSError):
        logger.exception("Error handling %s for session %s", event, session_id)
        await _send_error(websocket, f"Failed to process {event}")


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})
