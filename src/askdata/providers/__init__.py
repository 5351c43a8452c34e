"""Chat model providers."""

from __future__ import annotations

from askdata.config.settings import Settings
from askdata.errors import UnknownProviderError

from .base import (
    EndOfTurn,
    Exchange,
    ExchangeContext,
    ProviderAdapter,
    ProviderEvent,
    TextFragment,
    ToolInvocationRequested,
)


def build_provider(settings: Settings) -> ProviderAdapter:
    """Build the adapter selected by ``settings.provider``."""

    common = {
        "model": settings.resolved_model,
        "max_tokens": settings.max_tokens,
        "timeout_seconds": settings.model_timeout_seconds,
    }
    if settings.provider == "anthropic":
        from anthropic import AsyncAnthropic

        from .anthropic import AnthropicProvider

        client = AsyncAnthropic(
            api_key=settings.resolved_api_key,
            base_url=settings.api_base,
            timeout=settings.model_timeout_seconds,
        )
        return AnthropicProvider(client, **common)
    if settings.provider == "openai":
        from openai import AsyncOpenAI

        from .openai import OpenAIProvider

        client = AsyncOpenAI(
            api_key=settings.resolved_api_key,
            base_url=settings.api_base,
            timeout=settings.model_timeout_seconds,
        )
        return OpenAIProvider(client, **common)
    raise UnknownProviderError(f"unsupported provider: {settings.provider}")


__all__ = [
    "EndOfTurn",
    "Exchange",
    "ExchangeContext",
    "ProviderAdapter",
    "ProviderEvent",
    "TextFragment",
    "ToolInvocationRequested",
    "build_provider",
]
