"""Application settings."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from askdata.errors import ApiKeyNotConfiguredError, ModelNotConfiguredError

ProviderName = Literal["anthropic", "openai"]

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-3-5-sonnet-20240620",
    "openai": "gpt-4o",
}
PROVIDER_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class Settings(BaseSettings):
    """Process configuration loaded from ``ASKDATA_*`` env vars and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="ASKDATA_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model
    provider: ProviderName = Field(default="anthropic", description="Chat model provider")
    model: str | None = Field(default=None, description="Model name, provider default when unset")
    api_key: str | None = Field(default=None, description="API key for the model provider")
    api_base: str | None = Field(default=None, description="Optional API base URL")
    max_tokens: int = Field(default=4096, description="Maximum tokens per model response")
    model_timeout_seconds: float = Field(default=90, description="Bound on one model exchange")

    # Tool bridge
    collaborator_timeout_seconds: float = Field(default=60, description="Bound on each analytics call")
    context_window_turns: int = Field(default=2, description="Prior turns passed to question resolution")

    # Conversation store
    max_sessions: int = Field(default=1000, description="Sessions kept before LRU eviction")
    session_ttl_seconds: float = Field(default=3600, description="Idle time before a session expires")
    max_turns: int = Field(default=200, description="Turns kept per session")

    # ThoughtSpot
    thoughtspot_host: str | None = Field(default=None, description="ThoughtSpot instance host")
    thoughtspot_token: str | None = Field(default=None, description="ThoughtSpot bearer token")
    thoughtspot_datasource_id: str | None = Field(default=None, description="Worksheet or model id")

    # Server
    host: str = Field(default="127.0.0.1", description="HTTP bind host")
    port: int = Field(default=4000, description="HTTP bind port")

    @property
    def resolved_model(self) -> str:
        model = self.model or DEFAULT_MODELS.get(self.provider)
        if not model:
            raise ModelNotConfiguredError(f"no model configured for provider '{self.provider}'")
        return model

    @property
    def resolved_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        env_name = PROVIDER_KEY_ENV.get(self.provider, "")
        if env_key := os.getenv(env_name):
            return env_key
        raise ApiKeyNotConfiguredError(f"set ASKDATA_API_KEY or {env_name}")
