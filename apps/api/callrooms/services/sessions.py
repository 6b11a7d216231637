"""Session lifecycle: creation, membership, termination and token issuance."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import (
    DuplicateParticipantError,
    NotAuthorizedError,
    ParticipantNotActiveError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    SessionBrokerError,
    SessionNotActiveError,
    SessionNotFoundError,
    StoreError,
    TokenGenerationError,
    ValidationError,
)
from ..models.participant import Participant, ParticipantRole
from ..models.session import CallSession, SessionStatus
from ..repositories import participants as participants_repo
from ..repositories import sessions as sessions_repo
from ..schemas import sessions as schemas
from .provider_registry import ProviderRegistry
from .rtc import RtcProvider, RtcToken, Subject

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "session_"
MAX_CHANNEL_ATTEMPTS = 5


class SessionEventSink(Protocol):
    async def session_ended(self, session_id: str, ended_by: str) -> int: ...


class SessionService:
    """Business rules for call sessions.

    Store access goes through the repositories with the caller's
    ``AsyncSession``; every write operation runs inside one transaction.
    """

    def __init__(self, registry: ProviderRegistry, notifier: SessionEventSink | None = None) -> None:
        self.registry = registry
        self.notifier = notifier

    async def create_session(
        self,
        db: AsyncSession,
        *,
        host_id: schemas.UserIdentifier,
        host_name: str,
        title: str | None = None,
        provider_name: str | None = None,
    ) -> schemas.SessionAccessResponse:
        """Open a session, register its host and mint the host's token."""

        host_id = _require_identifier(host_id, "hostId")
        host_name = _require_text(host_name, "hostName")
        provider = self._resolve_provider(provider_name)
        now = _utcnow()

        try:
            async with db.begin():
                channel_name = await _allocate_channel_name(db)
                call_session = await sessions_repo.create(
                    db,
                    host_id=str(host_id),
                    host_name=host_name,
                    title=(title or "").strip() or None,
                    provider=provider.name,
                    channel_name=channel_name,
                    started_at=now,
                )
                media_token = await _issue_token(provider, channel_name, host_id, ParticipantRole.HOST)
                host = await participants_repo.create(
                    db,
                    session_id=call_session.id,
                    user_id=str(host_id),
                    user_name=host_name,
                    role=ParticipantRole.HOST,
                    joined_at=now,
                )
                participants = await participants_repo.list_active(db, call_session.id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist new session for host %s", host_id)
            raise StoreError("Failed to create session") from exc

        logger.info("Created session %s on %s for host %s", call_session.id, provider.name, host_id)
        rtm_token = await _issue_secondary_token(provider, host_id)
        return _access_view(call_session, host, participants, media_token, rtm_token, host_id)

    async def get_session(self, db: AsyncSession, session_id: str) -> schemas.SessionDetail:
        try:
            async with db.begin():
                call_session = await sessions_repo.get_by_id(db, session_id)
                if call_session is None:
                    raise SessionNotFoundError()
                participants = await participants_repo.list_active(db, session_id)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load session") from exc

        summary = schemas.SessionSummary.model_validate(call_session)
        return schemas.SessionDetail(
            **summary.model_dump(),
            participants=[schemas.ParticipantView.model_validate(p) for p in participants],
        )

    async def join_session(
        self,
        db: AsyncSession,
        session_id: str,
        *,
        user_id: schemas.UserIdentifier,
        user_name: str,
        role: ParticipantRole | str | None = None,
    ) -> schemas.SessionAccessResponse:
        """Add a user to an active session, or return their existing membership."""

        user_id = _require_identifier(user_id, "userId")
        user_name = _require_text(user_name, "userName")
        requested_role = _sanitize_role(role)

        try:
            async with db.begin():
                call_session = await sessions_repo.get_by_id(db, session_id)
                if call_session is None:
                    raise SessionNotFoundError()
                if call_session.status is not SessionStatus.ACTIVE:
                    raise SessionNotActiveError()

                provider = self._bound_provider(call_session)
                participant = await participants_repo.get_active(db, session_id, str(user_id))
                if participant is None:
                    participant = await participants_repo.create(
                        db,
                        session_id=session_id,
                        user_id=str(user_id),
                        user_name=user_name,
                        role=requested_role,
                        joined_at=_utcnow(),
                    )
                    logger.info("User %s joined session %s as %s", user_id, session_id, participant.role.value)
                else:
                    logger.info("User %s rejoined session %s; reusing membership", user_id, session_id)

                media_token = await _issue_token(provider, call_session.channel_name, user_id, participant.role)
                participants = await participants_repo.list_active(db, session_id)
        except IntegrityError as exc:
            raise DuplicateParticipantError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist join for session %s", session_id)
            raise StoreError("Failed to join session") from exc

        rtm_token = await _issue_secondary_token(provider, user_id)
        return _access_view(call_session, participant, participants, media_token, rtm_token, user_id)

    async def leave_session(
        self,
        db: AsyncSession,
        session_id: str,
        *,
        user_id: schemas.UserIdentifier,
    ) -> schemas.ParticipantView:
        """Mark the user's active membership as left. Hosts leaving do not end the session."""

        user_id = _require_identifier(user_id, "userId")

        try:
            async with db.begin():
                call_session = await sessions_repo.get_by_id(db, session_id)
                if call_session is None:
                    raise SessionNotFoundError()
                participant = await participants_repo.get_active(db, session_id, str(user_id))
                if participant is None:
                    raise ParticipantNotActiveError()
                await participants_repo.mark_left(db, participant, left_at=_utcnow())
        except SQLAlchemyError as exc:
            raise StoreError("Failed to leave session") from exc

        logger.info("User %s left session %s", user_id, session_id)
        return schemas.ParticipantView.model_validate(participant)

    async def end_session(
        self,
        db: AsyncSession,
        session_id: str,
        *,
        requester_id: schemas.UserIdentifier,
    ) -> schemas.EndSessionResponse:
        """End the session for everyone. Only the host may do this.

        Ending an already ended session returns the recorded terminal state and
        does not notify subscribers again.
        """

        requester_id = _require_identifier(requester_id, "userId")
        transitioned = False

        try:
            async with db.begin():
                call_session = await sessions_repo.get_by_id(db, session_id, for_update=True)
                if call_session is None:
                    raise SessionNotFoundError()
                if call_session.host_id != str(requester_id):
                    raise NotAuthorizedError()

                if call_session.status is SessionStatus.ACTIVE:
                    ended_at = _utcnow()
                    await sessions_repo.mark_ended(db, call_session, ended_at=ended_at)
                    released = await participants_repo.mark_all_left(db, session_id, left_at=ended_at)
                    transitioned = True
                    logger.info("Session %s ended by %s; %d participant(s) released", session_id, requester_id, released)
        except SQLAlchemyError as exc:
            logger.exception("Failed to end session %s", session_id)
            raise StoreError("Failed to end session") from exc

        if transitioned:
            await self._notify_ended(session_id, str(requester_id))

        return schemas.EndSessionResponse(
            id=call_session.id,
            status=call_session.status,
            ended_at=call_session.ended_at,
        )

    def _resolve_provider(self, provider_name: str | None) -> RtcProvider:
        if provider_name:
            try:
                provider = self.registry.get_provider(provider_name)
            except ProviderNotFoundError as exc:
                raise ProviderUnavailableError(f"Provider {provider_name} is not available") from exc
        else:
            provider = self.registry.get_default_provider()
            if provider is None:
                raise ProviderUnavailableError("Provider default is not available")

        if not provider.is_configured():
            raise ProviderUnavailableError(f"Provider {provider.name} is not properly configured")
        return provider

    def _bound_provider(self, call_session: CallSession) -> RtcProvider:
        """Joins always go through the provider the session was created on."""

        return self._resolve_provider(call_session.provider)

    async def _notify_ended(self, session_id: str, ended_by: str) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.session_ended(session_id, ended_by)
        except Exception:  # noqa: BLE001 - the stored state change is authoritative
            logger.exception("Failed to broadcast end of session %s", session_id)


async def _allocate_channel_name(db: AsyncSession) -> str:
    for _ in range(MAX_CHANNEL_ATTEMPTS):
        channel_name = f"{CHANNEL_PREFIX}{uuid4()}"
        if not await sessions_repo.channel_name_taken(db, channel_name):
            return channel_name
    raise StoreError("Could not allocate a unique channel name")


async def _issue_token(provider: RtcProvider, channel: str, subject: Subject, role: ParticipantRole) -> RtcToken:
    try:
        return await provider.generate_token(channel, subject, role)
    except SessionBrokerError:
        raise
    except Exception as exc:
        logger.exception("Provider %s failed to sign a token for channel %s", provider.name, channel)
        raise TokenGenerationError(f"Provider {provider.name} failed to generate a token") from exc


async def _issue_secondary_token(provider: RtcProvider, subject: Subject) -> RtcToken | None:
    """Messaging is optional; any failure disables it instead of failing the call."""

    try:
        return await provider.generate_secondary_token(subject)
    except Exception as exc:  # noqa: BLE001 - degrade to media-only
        logger.warning("Messaging token unavailable from %s for %s: %s", provider.name, subject, exc)
        return None


def _access_view(
    call_session: CallSession,
    participant: Participant,
    participants: list[Participant],
    media_token: RtcToken,
    rtm_token: RtcToken | None,
    user_id: Subject,
) -> schemas.SessionAccessResponse:
    return schemas.SessionAccessResponse(
        session_id=call_session.id,
        channel_name=call_session.channel_name,
        app_id=media_token.app_id,
        provider=media_token.provider,
        user_id=user_id,
        role=participant.role,
        token=media_token.token,
        rtm_token=rtm_token.token if rtm_token is not None else None,
        expires_in=media_token.expires_in,
        session=schemas.SessionSummary.model_validate(call_session),
        participant=schemas.ParticipantView.model_validate(participant),
        participants=[schemas.ParticipantView.model_validate(p) for p in participants],
    )


def _sanitize_role(role: ParticipantRole | str | None) -> ParticipantRole:
    """Resolve a requested join role; ``host`` is only assigned at creation."""

    if role is None or role == "":
        return ParticipantRole.PARTICIPANT
    try:
        resolved = ParticipantRole(role)
    except ValueError as exc:
        raise ValidationError(f"Unknown role '{role}'") from exc
    if resolved is ParticipantRole.HOST:
        return ParticipantRole.PARTICIPANT
    return resolved


def _require_identifier(value: schemas.UserIdentifier | None, field: str) -> schemas.UserIdentifier:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} is required")
    return value


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
