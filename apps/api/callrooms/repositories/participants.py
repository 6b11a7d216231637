"""Participant repository helpers."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.participant import Participant, ParticipantRole, ParticipantStatus


async def get_active(db: AsyncSession, session_id: str, user_id: str) -> Participant | None:
    """Return the user's active membership in the session, if any."""

    stmt: Select[tuple[Participant]] = select(Participant).where(
        Participant.session_id == session_id,
        Participant.user_id == user_id,
        Participant.status == ParticipantStatus.ACTIVE,
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_latest(db: AsyncSession, session_id: str, user_id: str) -> Participant | None:
    """Return the most recent membership row regardless of status."""

    stmt = (
        select(Participant)
        .where(Participant.session_id == session_id, Participant.user_id == user_id)
        .order_by(Participant.joined_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_active(db: AsyncSession, session_id: str) -> list[Participant]:
    """Active participants in join order."""

    stmt = (
        select(Participant)
        .where(Participant.session_id == session_id, Participant.status == ParticipantStatus.ACTIVE)
        .order_by(Participant.joined_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create(
    db: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    user_name: str,
    role: ParticipantRole,
    joined_at: datetime,
) -> Participant:
    """Insert an active participant; the flush surfaces unique-index violations."""

    participant = Participant(
        session_id=session_id,
        user_id=user_id,
        user_name=user_name,
        role=role,
        status=ParticipantStatus.ACTIVE,
        joined_at=joined_at,
    )
    db.add(participant)
    await db.flush()
    return participant


async def mark_left(db: AsyncSession, participant: Participant, *, left_at: datetime) -> Participant:
    participant.status = ParticipantStatus.LEFT
    participant.left_at = left_at
    db.add(participant)
    await db.flush()
    return participant


async def mark_all_left(db: AsyncSession, session_id: str, *, left_at: datetime) -> int:
    """Move every active participant of the session to ``left`` in one statement."""

    stmt = (
        update(Participant)
        .where(Participant.session_id == session_id, Participant.status == ParticipantStatus.ACTIVE)
        .values(status=ParticipantStatus.LEFT, left_at=left_at)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0
