"""Application-level exception types for askdata."""

from __future__ import annotations


class AskDataError(Exception):
    """Base exception for askdata."""


class ConfigurationError(AskDataError):
    """Base exception for configuration and startup validation errors."""


class ModelNotConfiguredError(ConfigurationError):
    """Raised when model configuration is missing."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class UnknownProviderError(ConfigurationError):
    """Raised when the configured provider has no adapter."""


class BackendNotConfiguredError(ConfigurationError):
    """Raised when the analytics backend lacks host, token or data source."""


class SessionNotFoundError(AskDataError):
    """Raised when a session id is not known to the conversation store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class ProviderError(AskDataError):
    """Model transport, rate limit or payload failure. Fatal for the turn only."""


class CollaboratorError(AskDataError):
    """Failure of an external analytics call."""


class TurnFailedError(AskDataError):
    """Raised when a turn fails before any output was streamed."""
