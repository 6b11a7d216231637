"""Expose ORM models."""
from .base import Base
from .participant import Participant, ParticipantRole, ParticipantStatus
from .session import CallSession, SessionStatus

__all__ = [
    "Base",
    "CallSession",
    "Participant",
    "ParticipantRole",
    "ParticipantStatus",
    "SessionStatus",
]
