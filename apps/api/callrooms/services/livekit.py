"""LiveKit access token issuance."""
from __future__ import annotations

import logging
from datetime import timedelta
from uuid import uuid4

from livekit import api

from ..models.participant import ParticipantRole
from .rtc import ProviderMetadata, RtcProvider, RtcToken, Subject, can_publish, numeric_uid, uses_numeric_uid

logger = logging.getLogger(__name__)


class LiveKitProvider(RtcProvider):
    """Issue LiveKit JWTs scoped to a single room.

    LiveKit has no numeric slots, so uid-addressed subjects become string
    identities and ``0`` gets a generated guest identity.
    """

    name = "livekit"

    def is_configured(self) -> bool:
        return bool(
            str(self.config.get("api_key") or "").strip()
            and str(self.config.get("api_secret") or "").strip()
        )

    async def generate_token(
        self,
        channel: str,
        subject: Subject,
        role: ParticipantRole = ParticipantRole.PARTICIPANT,
    ) -> RtcToken:
        self._ensure_configured()

        identity = self._identity(subject)
        publish = can_publish(role)
        logger.info("Issuing LiveKit token room=%s identity=%s role=%s", channel, identity, role.value)

        grants = api.VideoGrants(
            room_join=True,
            room=channel,
            can_publish=publish,
            can_subscribe=True,
            can_publish_data=publish,
        )
        token = (
            api.AccessToken(self.config["api_key"], self.config["api_secret"])
            .with_identity(identity)
            .with_grants(grants)
            .with_ttl(timedelta(seconds=self.token_ttl_seconds))
        )
        jwt_token = await self._sign(token.to_jwt)

        return RtcToken(
            token=jwt_token,
            app_id=str(self.config["api_key"]),
            user_id=subject,
            role=role,
            provider=self.name,
            expires_in=self.token_ttl_seconds,
        )

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            configured=self.is_configured(),
            features=frozenset({"video", "audio", "screen-sharing", "data-messages"}),
            max_participants=20,
            supported_platforms=frozenset({"web", "mobile", "desktop"}),
        )

    @staticmethod
    def _identity(subject: Subject) -> str:
        if uses_numeric_uid(subject):
            uid = numeric_uid(subject)
            return str(uid) if uid else f"guest-{uuid4().hex[:12]}"
        return str(subject)
