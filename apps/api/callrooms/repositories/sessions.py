"""Call session repository helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.session import CallSession, SessionStatus


async def get_by_id(db: AsyncSession, session_id: str, *, for_update: bool = False) -> CallSession | None:
    """Return a call session by identifier, optionally locking the row."""

    stmt: Select[tuple[CallSession]] = select(CallSession).where(CallSession.id == session_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def channel_name_taken(db: AsyncSession, channel_name: str) -> bool:
    stmt = select(CallSession.id).where(CallSession.channel_name == channel_name).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def create(
    db: AsyncSession,
    *,
    host_id: str,
    host_name: str,
    title: str | None,
    provider: str,
    channel_name: str,
    started_at: datetime,
) -> CallSession:
    """Insert an active session and flush so its id is available."""

    call_session = CallSession(
        host_id=host_id,
        host_name=host_name,
        title=title,
        provider=provider,
        channel_name=channel_name,
        status=SessionStatus.ACTIVE,
        started_at=started_at,
    )
    db.add(call_session)
    await db.flush()
    return call_session


async def mark_ended(db: AsyncSession, call_session: CallSession, *, ended_at: datetime) -> CallSession:
    call_session.status = SessionStatus.ENDED
    call_session.ended_at = ended_at
    db.add(call_session)
    await db.flush()
    return call_session
