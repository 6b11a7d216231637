"""Liveness probes."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from ..db.session import ping

logger = logging.getLogger(__name__)

router = APIRouter()


async def _store_status(request: Request) -> tuple[int, dict[str, Any]]:
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await ping(request.app.state.session_factory)
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Health check failed: %s", exc)
        return status.HTTP_503_SERVICE_UNAVAILABLE, {
            "status": "degraded",
            "timestamp": timestamp,
            "database": "disconnected",
            "error": str(exc),
        }
    return status.HTTP_200_OK, {"status": "ok", "timestamp": timestamp, "database": "connected"}


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Report whether the session store is reachable."""

    status_code, body = await _store_status(request)
    return JSONResponse(status_code=status_code, content=body)


@router.head("/health")
async def health_head(request: Request) -> Response:
    """Same check as GET for uptime monitors that only read the status code."""

    status_code, _ = await _store_status(request)
    return Response(status_code=status_code)
