"""FastAPI application for the call session broker."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .core.config import Settings, get_settings
from .core.errors import SessionBrokerError
from .db.session import build_engine, build_session_factory, init_models
from .routers import health as health_router
from .routers import realtime as realtime_router
from .routers import sessions as sessions_router
from .services.presence import PresenceNotifier
from .services.provider_registry import ProviderRegistry
from .services.sessions import SessionService
from .services.signaling import SignalingManager

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    registry: ProviderRegistry | None = None,
) -> FastAPI:
    """Wire the provider registry, store and notifier into a FastAPI app.

    Passing ``session_factory`` skips engine creation and schema bootstrap;
    the caller owns that store.
    """

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    engine: AsyncEngine | None = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)

    registry = registry if registry is not None else ProviderRegistry(settings.provider_entries())
    presence = PresenceNotifier(SignalingManager(), session_factory)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if engine is not None and settings.database_auto_create:
            await init_models(engine)
            logger.info("Database schema ensured")
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="Call Session Broker API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.presence = presence
    app.state.session_service = SessionService(registry, presence)

    origins = settings.allowed_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _register_exception_handlers(app)

    app.include_router(health_router.router, prefix="/api", tags=["meta"])
    app.include_router(sessions_router.router, prefix="/api/sessions", tags=["sessions"])
    app.include_router(realtime_router.router, tags=["realtime"])
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SessionBrokerError)
    async def _broker_error(request: Request, exc: SessionBrokerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())[1:])
            problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "; ".join(problems) or "Invalid request"},
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


app = create_app()
