from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from callrooms.core.config import Settings
from callrooms.main import create_app


@pytest_asyncio.fixture
async def client(session_factory, registry):
    app = create_app(
        Settings(database_url="sqlite+aiosqlite://", cors_allow_origins=[]),
        session_factory=session_factory,
        registry=registry,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


async def _create(client: AsyncClient, **body) -> dict:
    payload = {"hostId": "u1", "hostName": "Alice", **body}
    response = await client.post("/api/sessions/create", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_returns_host_access(client: AsyncClient) -> None:
    body = await _create(client, title="Design review")

    assert body["role"] == "host"
    assert body["userId"] == "u1"
    assert body["appId"] == "app-123"
    assert body["provider"] == "fake"
    assert body["expiresIn"] == 86400
    assert body["rtmToken"] == "rtm:u1"
    assert body["token"].startswith(f"tok:{body['channelName']}:u1")
    assert body["session"]["status"] == "active"
    assert body["session"]["title"] == "Design review"
    assert body["session"]["endedAt"] is None
    assert [p["userId"] for p in body["participants"]] == ["u1"]


@pytest.mark.asyncio
async def test_create_accepts_alternate_field_names(client: AsyncClient) -> None:
    response = await client.post(
        "/api/sessions/create",
        json={"userId": 7, "userName": "Numeric Host", "sessionName": "Retro"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["userId"] == 7
    assert body["session"]["hostId"] == "7"
    assert body["session"]["title"] == "Retro"


@pytest.mark.asyncio
async def test_create_rejects_missing_fields(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/create", json={"hostId": "u1"})

    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_create_rejects_blank_host_name(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/create", json={"hostId": "u1", "hostName": "   "})

    assert response.status_code == 400
    assert response.json() == {"error": "hostName is required"}


@pytest.mark.asyncio
async def test_create_with_unknown_provider(client: AsyncClient) -> None:
    response = await client.post(
        "/api/sessions/create",
        json={"hostId": "u1", "hostName": "Alice", "provider": "zoom"},
    )

    assert response.status_code == 503
    assert "zoom" in response.json()["error"]


@pytest.mark.asyncio
async def test_get_session_detail(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.get(f"/api/sessions/{created['sessionId']}")

    assert response.status_code == 200
    detail = response.json()
    assert detail["id"] == created["sessionId"]
    assert detail["hostId"] == "u1"
    assert detail["channelName"] == created["channelName"]
    assert [p["role"] for p in detail["participants"]] == ["host"]


@pytest.mark.asyncio
async def test_get_unknown_session(client: AsyncClient) -> None:
    response = await client.get("/api/sessions/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


@pytest.mark.asyncio
async def test_join_and_end_flow(client: AsyncClient) -> None:
    created = await _create(client)
    session_id = created["sessionId"]

    joined = await client.post(f"/api/sessions/{session_id}/join", json={"userId": "u2", "userName": "Bob"})
    assert joined.status_code == 200
    assert joined.json()["role"] == "participant"
    assert len(joined.json()["participants"]) == 2

    forbidden = await client.post(f"/api/sessions/{session_id}/end", json={"userId": "u2"})
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Only the host can end the session"}

    ended = await client.post(f"/api/sessions/{session_id}/end", json={"userId": "u1"})
    assert ended.status_code == 200
    assert ended.json()["status"] == "ended"
    assert ended.json()["endedAt"] is not None

    late = await client.post(f"/api/sessions/{session_id}/join", json={"userId": "u3", "userName": "Cara"})
    assert late.status_code == 409
    assert late.json() == {"error": "Session is not active"}

    detail = (await client.get(f"/api/sessions/{session_id}")).json()
    assert detail["status"] == "ended"
    assert detail["participants"] == []


@pytest.mark.asyncio
async def test_join_rejects_invalid_role(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.post(
        f"/api/sessions/{created['sessionId']}/join",
        json={"userId": "u2", "userName": "Bob", "role": "moderator"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_join_unknown_session(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/missing/join", json={"userId": "u2", "userName": "Bob"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_leave_then_leave_again(client: AsyncClient) -> None:
    created = await _create(client)
    session_id = created["sessionId"]
    await client.post(f"/api/sessions/{session_id}/join", json={"userId": "u2", "userName": "Bob"})

    left = await client.post(f"/api/sessions/{session_id}/leave", json={"userId": "u2"})
    assert left.status_code == 200
    assert left.json()["status"] == "left"
    assert left.json()["leftAt"] is not None

    again = await client.post(f"/api/sessions/{session_id}/leave", json={"userId": "u2"})
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_end_unknown_session(client: AsyncClient) -> None:
    response = await client.post("/api/sessions/missing/end", json={"userId": "u1"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_end_requires_user_id(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.post(f"/api/sessions/{created['sessionId']}/end", json={})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_providers(client: AsyncClient) -> None:
    response = await client.get("/api/sessions/providers")

    assert response.status_code == 200
    body = response.json()
    assert body["default"] == "fake"
    assert body["providers"] == [
        {
            "name": "fake",
            "configured": True,
            "metadata": {
                "name": "fake",
                "configured": True,
                "features": ["video"],
                "maxParticipants": 4,
                "supportedPlatforms": [],
            },
        }
    ]


@pytest.mark.asyncio
async def test_frontend_origin_is_allowed(session_factory, registry) -> None:
    app = create_app(
        Settings(database_url="sqlite+aiosqlite://", cors_allow_origins=[], frontend_url="http://front.test"),
        session_factory=session_factory,
        registry=registry,
    )
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        response = await http.options(
            "/api/sessions/create",
            headers={"Origin": "http://front.test", "Access-Control-Request-Method": "POST"},
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://front.test"
