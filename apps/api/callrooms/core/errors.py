"""Error taxonomy for session brokering.

Every error carries the HTTP status it maps to so the application can render
it without a lookup table. Handlers live in ``callrooms.main``.
"""
from __future__ import annotations


class SessionBrokerError(Exception):
    """Base class for errors raised by the session broker."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SessionBrokerError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(SessionBrokerError):
    status_code = 404
    default_message = "Resource not found"


class SessionNotFoundError(NotFoundError):
    default_message = "Session not found"


class StateConflictError(SessionBrokerError):
    status_code = 409
    default_message = "Operation conflicts with current state"


class SessionNotActiveError(StateConflictError):
    default_message = "Session is not active"


class DuplicateParticipantError(StateConflictError):
    default_message = "User is already an active participant in this session"


class ParticipantNotActiveError(StateConflictError):
    default_message = "User is not an active participant in this session"


class AuthorizationError(SessionBrokerError):
    status_code = 403
    default_message = "Not authorized"


class NotAuthorizedError(AuthorizationError):
    default_message = "Only the host can end the session"


class ProviderError(SessionBrokerError):
    status_code = 503
    default_message = "Video provider error"


class ProviderUnavailableError(ProviderError):
    default_message = "Video provider is not available"


class ProviderNotFoundError(ProviderUnavailableError):
    default_message = "Provider not found or not configured"


class ProviderNotConfiguredError(ProviderUnavailableError):
    default_message = "Provider is not properly configured"


class NoProviderAvailableError(ProviderUnavailableError):
    default_message = "No video providers are configured"


class TokenGenerationError(ProviderError):
    status_code = 502
    default_message = "Failed to generate access token"


class SecondaryTokenUnsupportedError(ProviderError):
    default_message = "Provider does not issue messaging tokens"


class StoreError(SessionBrokerError):
    status_code = 500
    default_message = "Session store failure"
