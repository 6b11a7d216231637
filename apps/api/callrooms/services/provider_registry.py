"""Registry of configured video providers."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.config import ProviderEntry
from ..core.errors import NoProviderAvailableError, ProviderNotFoundError
from .agora import AgoraProvider
from .livekit import LiveKitProvider
from .rtc import RtcProvider

logger = logging.getLogger(__name__)

PROVIDER_TYPES: dict[str, type[RtcProvider]] = {
    AgoraProvider.name: AgoraProvider,
    LiveKitProvider.name: LiveKitProvider,
}


class ProviderRegistry:
    """Providers that are enabled and fully configured, in declaration order.

    Built once at startup and handed to the services that need it. A provider
    that is enabled but missing credentials is skipped with a warning so one bad
    entry never blocks the others or the process.
    """

    def __init__(
        self,
        entries: Iterable[ProviderEntry],
        provider_types: Mapping[str, type[RtcProvider]] | None = None,
    ) -> None:
        self._providers: dict[str, RtcProvider] = {}
        types = PROVIDER_TYPES if provider_types is None else provider_types

        for entry in entries:
            if not entry.enabled:
                continue
            factory = types.get(entry.name)
            if factory is None:
                logger.warning("Unknown video provider '%s' in configuration; skipping", entry.name)
                continue
            provider = factory(entry.config)
            if not provider.is_configured():
                logger.warning("Video provider '%s' is enabled but not configured; skipping", entry.name)
                continue
            self._providers[entry.name] = provider
            logger.info("Registered video provider '%s'", entry.name)

        if not self._providers:
            logger.warning("%s; session creation and joins will fail", NoProviderAvailableError().message)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def get_provider(self, name: str) -> RtcProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(f"Provider '{name}' not found or not configured")
        return provider

    def get_default_provider(self) -> RtcProvider | None:
        return next(iter(self._providers.values()), None)

    def list_available(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "metadata": provider.get_metadata().as_dict(),
                "configured": provider.is_configured(),
            }
            for name, provider in self._providers.items()
        ]
