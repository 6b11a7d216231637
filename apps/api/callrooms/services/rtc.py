"""RTC provider abstraction.

Each video back-end issues channel-scoped access tokens through the same
contract so the session core never depends on a vendor SDK directly.
Signing is delegated to the vendor SDK; this module only fixes the policy
around it: expiry, the role-to-capability mapping and subject addressing.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, TypeVar, Union

from ..core.errors import ProviderNotConfiguredError, SecondaryTokenUnsupportedError
from ..models.participant import ParticipantRole

DEFAULT_TOKEN_TTL_SECONDS = int(timedelta(hours=24).total_seconds())

PUBLISHING_ROLES = frozenset({ParticipantRole.HOST, ParticipantRole.PARTICIPANT})

Subject = Union[str, int, None]

_T = TypeVar("_T")


@dataclass(slots=True)
class RtcToken:
    token: str
    app_id: str
    user_id: Subject
    role: ParticipantRole | None
    provider: str
    expires_in: int


@dataclass(slots=True)
class ProviderMetadata:
    name: str
    configured: bool
    features: frozenset[str] = field(default_factory=frozenset)
    max_participants: int = 0
    supported_platforms: frozenset[str] = field(default_factory=frozenset)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "configured": self.configured,
            "features": sorted(self.features),
            "maxParticipants": self.max_participants,
            "supportedPlatforms": sorted(self.supported_platforms),
        }


def can_publish(role: ParticipantRole) -> bool:
    """Hosts and participants send media; the audience only receives."""

    return role in PUBLISHING_ROLES


def uses_numeric_uid(subject: Subject) -> bool:
    """Return True when the subject must be addressed by numeric slot.

    Text subjects are addressed by account. Integers, ``0``/``"0"`` and missing
    subjects are addressed by uid, where ``0`` lets the provider pick a slot.
    """

    if isinstance(subject, str):
        return subject.strip() in ("", "0")
    return True


def numeric_uid(subject: Subject) -> int:
    if isinstance(subject, int) and not isinstance(subject, bool):
        return subject
    return 0


class RtcProvider(ABC):
    """Token issuance contract shared by every video back-end."""

    name = "base"

    def __init__(self, config: Mapping[str, Any]) -> None:
        self.config = dict(config)
        self.token_ttl_seconds = int(self.config.get("token_ttl_seconds") or DEFAULT_TOKEN_TTL_SECONDS)

    @abstractmethod
    def is_configured(self) -> bool:
        """True when every credential required to sign tokens is present."""

    @abstractmethod
    async def generate_token(
        self,
        channel: str,
        subject: Subject,
        role: ParticipantRole = ParticipantRole.PARTICIPANT,
    ) -> RtcToken:
        """Issue a media token for ``subject`` in ``channel``."""

    async def generate_secondary_token(self, subject: Subject) -> RtcToken:
        """Issue a token for the provider's messaging channel, when it has one."""

        raise SecondaryTokenUnsupportedError(f"Provider '{self.name}' does not issue messaging tokens")

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=self.name, configured=self.is_configured())

    def _ensure_configured(self) -> None:
        if not self.is_configured():
            raise ProviderNotConfiguredError(f"Provider '{self.name}' is not properly configured")

    async def _sign(self, builder: Callable[..., _T], *args: Any) -> _T:
        """Run a CPU-bound SDK signer off the event loop."""

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, builder, *args)
