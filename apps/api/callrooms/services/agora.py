"""Agora RTC/RTM token issuance."""
from __future__ import annotations

import logging
import time

from agora_token_builder import RtcTokenBuilder, RtmTokenBuilder

from ..models.participant import ParticipantRole
from .rtc import ProviderMetadata, RtcProvider, RtcToken, Subject, can_publish, numeric_uid, uses_numeric_uid

logger = logging.getLogger(__name__)

# Role values understood by the Agora token builders.
AGORA_ROLE_PUBLISHER = 1
AGORA_ROLE_SUBSCRIBER = 2
AGORA_ROLE_RTM_USER = 1


class AgoraProvider(RtcProvider):
    """Issue Agora media tokens and companion RTM messaging tokens."""

    name = "agora"

    def is_configured(self) -> bool:
        return bool(
            str(self.config.get("app_id") or "").strip()
            and str(self.config.get("app_certificate") or "").strip()
        )

    @property
    def app_id(self) -> str:
        return str(self.config.get("app_id") or "")

    async def generate_token(
        self,
        channel: str,
        subject: Subject,
        role: ParticipantRole = ParticipantRole.PARTICIPANT,
    ) -> RtcToken:
        self._ensure_configured()

        expires_at = int(time.time()) + self.token_ttl_seconds
        agora_role = AGORA_ROLE_PUBLISHER if can_publish(role) else AGORA_ROLE_SUBSCRIBER
        certificate = str(self.config["app_certificate"])

        if uses_numeric_uid(subject):
            uid = numeric_uid(subject)
            logger.info("Issuing Agora uid token channel=%s uid=%s role=%s", channel, uid, role.value)
            token = await self._sign(
                RtcTokenBuilder.buildTokenWithUid,
                self.app_id,
                certificate,
                channel,
                uid,
                agora_role,
                expires_at,
            )
        else:
            logger.info("Issuing Agora account token channel=%s account=%s role=%s", channel, subject, role.value)
            token = await self._sign(
                RtcTokenBuilder.buildTokenWithAccount,
                self.app_id,
                certificate,
                channel,
                str(subject),
                agora_role,
                expires_at,
            )

        return RtcToken(
            token=token,
            app_id=self.app_id,
            user_id=subject,
            role=role,
            provider=self.name,
            expires_in=self.token_ttl_seconds,
        )

    async def generate_secondary_token(self, subject: Subject) -> RtcToken:
        """RTM tokens are always addressed by the textual user id."""

        self._ensure_configured()

        account = "" if subject is None else str(subject)
        expires_at = int(time.time()) + self.token_ttl_seconds
        token = await self._sign(
            RtmTokenBuilder.buildToken,
            self.app_id,
            str(self.config["app_certificate"]),
            account,
            AGORA_ROLE_RTM_USER,
            expires_at,
        )
        return RtcToken(
            token=token,
            app_id=self.app_id,
            user_id=account,
            role=None,
            provider=self.name,
            expires_in=self.token_ttl_seconds,
        )

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            configured=self.is_configured(),
            features=frozenset({"video", "audio", "screen-sharing", "recording", "real-time-messaging"}),
            max_participants=17,
            supported_platforms=frozenset({"web", "mobile", "desktop"}),
        )
