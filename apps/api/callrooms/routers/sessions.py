"""Session endpoints: create, inspect, join, leave and end call sessions."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..schemas import rtc as rtc_schemas
from ..schemas import sessions as schemas
from ..services.sessions import SessionService

router = APIRouter()


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


@router.get("/providers", response_model=rtc_schemas.ProviderListResponse)
async def list_providers(service: SessionService = Depends(get_session_service)) -> rtc_schemas.ProviderListResponse:
    """List the video providers sessions can be created on."""

    default = service.registry.get_default_provider()
    return rtc_schemas.ProviderListResponse(
        providers=[rtc_schemas.ProviderOut.model_validate(item) for item in service.registry.list_available()],
        default=default.name if default is not None else None,
    )


@router.post("/create", response_model=schemas.SessionAccessResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: schemas.CreateSessionRequest,
    db: AsyncSession = Depends(get_session),
    service: SessionService = Depends(get_session_service),
) -> schemas.SessionAccessResponse:
    """Open a new session and return the host's access token."""

    return await service.create_session(
        db,
        host_id=payload.host_id,
        host_name=payload.host_name,
        title=payload.title,
        provider_name=payload.provider,
    )


@router.get("/{session_id}", response_model=schemas.SessionDetail)
async def get_session_detail(
    session_id: str,
    db: AsyncSession = Depends(get_session),
    service: SessionService = Depends(get_session_service),
) -> schemas.SessionDetail:
    return await service.get_session(db, session_id)


@router.post("/{session_id}/join", response_model=schemas.SessionAccessResponse)
async def join_session(
    session_id: str,
    payload: schemas.JoinSessionRequest,
    db: AsyncSession = Depends(get_session),
    service: SessionService = Depends(get_session_service),
) -> schemas.SessionAccessResponse:
    """Join an active session; repeated joins reuse the existing membership."""

    return await service.join_session(
        db,
        session_id,
        user_id=payload.user_id,
        user_name=payload.user_name,
        role=payload.role,
    )


@router.post("/{session_id}/leave", response_model=schemas.ParticipantView)
async def leave_session(
    session_id: str,
    payload: schemas.SessionActorRequest,
    db: AsyncSession = Depends(get_session),
    service: SessionService = Depends(get_session_service),
) -> schemas.ParticipantView:
    return await service.leave_session(db, session_id, user_id=payload.user_id)


@router.post("/{session_id}/end", response_model=schemas.EndSessionResponse)
async def end_session(
    session_id: str,
    payload: schemas.SessionActorRequest,
    db: AsyncSession = Depends(get_session),
    service: SessionService = Depends(get_session_service),
) -> schemas.EndSessionResponse:
    """End a session (host only)."""

    return await service.end_session(db, session_id, requester_id=payload.user_id)
