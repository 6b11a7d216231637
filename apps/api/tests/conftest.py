"""Shared fixtures: in-memory store, fake provider and recording notifier."""
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from callrooms.core.config import ProviderEntry
from callrooms.core.errors import TokenGenerationError
from callrooms.models import Base, CallSession, Participant, ParticipantRole
from callrooms.services.provider_registry import ProviderRegistry
from callrooms.services.rtc import ProviderMetadata, RtcProvider, RtcToken, Subject
from callrooms.services.sessions import SessionService


class FakeProvider(RtcProvider):
    """Deterministic provider that records every token it issues."""

    name = "fake"

    def __init__(self, config) -> None:
        super().__init__(config)
        self.calls: list[tuple[str, Subject, ParticipantRole]] = []
        self.secondary_calls: list[Subject] = []
        self.fail_secondary = False
        self.fail_primary = False

    def is_configured(self) -> bool:
        return bool(self.config.get("app_id") and self.config.get("secret"))

    async def generate_token(self, channel, subject, role=ParticipantRole.PARTICIPANT) -> RtcToken:
        self._ensure_configured()
        if self.fail_primary:
            raise TokenGenerationError("signing failed")
        self.calls.append((channel, subject, role))
        return RtcToken(
            token=f"tok:{channel}:{subject}:{role.value}",
            app_id=self.config["app_id"],
            user_id=subject,
            role=role,
            provider=self.name,
            expires_in=self.token_ttl_seconds,
        )

    async def generate_secondary_token(self, subject) -> RtcToken:
        self.secondary_calls.append(subject)
        if self.fail_secondary:
            raise RuntimeError("messaging backend down")
        return RtcToken(
            token=f"rtm:{subject}",
            app_id=self.config["app_id"],
            user_id=str(subject),
            role=None,
            provider=self.name,
            expires_in=self.token_ttl_seconds,
        )

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=self.name, configured=self.is_configured(), features=frozenset({"video"}), max_participants=4)


class RecordingNotifier:
    def __init__(self) -> None:
        self.ended: list[tuple[str, str]] = []

    async def session_ended(self, session_id: str, ended_by: str) -> int:
        self.ended.append((session_id, ended_by))
        return 1


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):  # pragma: no cover - sqlite hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(
        [ProviderEntry(name="fake", enabled=True, config={"app_id": "app-123", "secret": "s3cret"})],
        provider_types={"fake": FakeProvider},
    )


@pytest.fixture
def provider(registry: ProviderRegistry) -> FakeProvider:
    return registry.get_provider("fake")  # type: ignore[return-value]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(registry: ProviderRegistry, notifier: RecordingNotifier) -> SessionService:
    return SessionService(registry, notifier)


@pytest.fixture
def read_participants(session_factory: async_sessionmaker[AsyncSession]):
    """Read participant rows through a fresh session, bypassing the service."""

    async def _read(session_id: str) -> list[Participant]:
        async with session_factory() as db:
            result = await db.execute(
                select(Participant).where(Participant.session_id == session_id).order_by(Participant.joined_at)
            )
            return list(result.scalars().all())

    return _read


@pytest.fixture
def read_session(session_factory: async_sessionmaker[AsyncSession]):
    async def _read(session_id: str) -> CallSession | None:
        async with session_factory() as db:
            return await db.get(CallSession, session_id)

    return _read
