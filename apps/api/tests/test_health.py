import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from callrooms.core.config import Settings
from callrooms.main import create_app


class _UnreachableSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, *_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))


def _unreachable_factory():
    return _UnreachableSession()


def _app(session_factory, registry):
    return create_app(
        Settings(database_url="sqlite+aiosqlite://", cors_allow_origins=[]),
        session_factory=session_factory,
        registry=registry,
    )


@pytest.mark.asyncio
async def test_health_endpoint(session_factory, registry) -> None:
    transport = ASGITransport(app=_app(session_factory, registry))

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_health_reports_unreachable_store(registry) -> None:
    transport = ASGITransport(app=_app(_unreachable_factory, registry))

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["database"] == "disconnected"


@pytest.mark.asyncio
async def test_health_head(session_factory, registry) -> None:
    transport = ASGITransport(app=_app(session_factory, registry))

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.head("/api/health")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_head_reports_unreachable_store(registry) -> None:
    transport = ASGITransport(app=_app(_unreachable_factory, registry))

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.head("/api/health")

    assert response.status_code == 503
