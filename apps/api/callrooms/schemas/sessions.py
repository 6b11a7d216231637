"""Schemas for session creation, membership and termination."""
from __future__ import annotations

from datetime import datetime
from typing import Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models.participant import ParticipantRole, ParticipantStatus
from ..models.session import SessionStatus

UserIdentifier = Union[str, int]


class CamelModel(BaseModel):
    """Response base rendering camelCase keys for browser clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ParticipantView(CamelModel):
    id: str
    user_id: str
    user_name: str
    role: ParticipantRole
    status: ParticipantStatus
    joined_at: datetime
    left_at: datetime | None = None


class SessionSummary(CamelModel):
    id: str
    host_id: str
    host_name: str
    title: str | None = None
    provider: str
    channel_name: str
    status: SessionStatus
    started_at: datetime
    ended_at: datetime | None = None


class SessionDetail(SessionSummary):
    participants: list[ParticipantView] = Field(default_factory=list)


class SessionAccessResponse(CamelModel):
    """What a client needs to enter the call after creating or joining it."""

    session_id: str
    channel_name: str
    app_id: str
    provider: str
    user_id: UserIdentifier
    role: ParticipantRole
    token: str
    rtm_token: str | None = Field(default=None, description="Messaging token; null when messaging is disabled")
    expires_in: int = Field(..., ge=1, description="Seconds until the media token expires")
    session: SessionSummary
    participant: ParticipantView
    participants: list[ParticipantView]


class EndSessionResponse(CamelModel):
    id: str
    status: SessionStatus
    ended_at: datetime | None


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    host_id: UserIdentifier = Field(..., validation_alias=AliasChoices("hostId", "userId", "host_id"))
    host_name: str = Field(..., validation_alias=AliasChoices("hostName", "userName", "host_name"))
    title: str | None = Field(default=None, validation_alias=AliasChoices("title", "sessionName"))
    provider: str | None = None


class JoinSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: UserIdentifier = Field(..., validation_alias=AliasChoices("userId", "user_id"))
    user_name: str = Field(..., validation_alias=AliasChoices("userName", "user_name"))
    role: ParticipantRole | None = None


class SessionActorRequest(BaseModel):
    """Body for host-only and self-service actions: who is asking."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: UserIdentifier = Field(..., validation_alias=AliasChoices("userId", "user_id"))
