"""Participant model."""
from __future__ import annotations

from datetime import datetime
import enum
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from .session import CallSession


class ParticipantRole(str, enum.Enum):
    HOST = "host"
    PARTICIPANT = "participant"
    AUDIENCE = "audience"


class ParticipantStatus(str, enum.Enum):
    ACTIVE = "active"
    LEFT = "left"


def _enum_values(members: type[enum.Enum]) -> list[str]:
    return [member.value for member in members]


class Participant(TimestampMixin, Base):
    """One user's membership in a call session."""

    __tablename__ = "participants"
    __table_args__ = (
        # One active row per user and session; left rows are history.
        Index(
            "uq_participants_active_user",
            "session_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    user_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[ParticipantRole] = mapped_column(
        Enum(ParticipantRole, name="participant_role", values_callable=_enum_values),
        default=ParticipantRole.PARTICIPANT,
        nullable=False,
    )
    status: Mapped[ParticipantStatus] = mapped_column(
        Enum(ParticipantStatus, name="participant_status", values_callable=_enum_values),
        default=ParticipantStatus.ACTIVE,
        nullable=False,
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    session: Mapped["CallSession"] = relationship("CallSession", back_populates="participants")
