"""Caller-facing chat service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from loguru import logger

from askdata.analytics import AnalyticsBackend, StaticBackend, ThoughtSpotBackend
from askdata.config.settings import Settings
from askdata.conversation.store import ConversationStore
from askdata.core.orchestrator import StreamingOrchestrator
from askdata.errors import SessionNotFoundError, TurnFailedError
from askdata.policy import policy_for
from askdata.providers import ProviderAdapter, build_provider
from askdata.tools import DATA_LOOKUP_TOOL, ToolBridge

FAILURE_FRAGMENT = "\n\nAn unexpected error occurred."


@dataclass
class ChatService:
    """Start sessions and stream turns.

    Unknown sessions are rejected before anything is streamed. A failure after
    output has started ends the stream with an apology instead of an error,
    since the caller has already received part of the answer.
    """

    store: ConversationStore
    orchestrator: StreamingOrchestrator
    backend: AnalyticsBackend | None = None

    def start_session(self) -> str:
        return self.store.create()

    async def send_turn(self, session_id: str, text: str) -> AsyncIterator[str]:
        if session_id not in self.store:
            raise SessionNotFoundError(session_id)
        return self._stream(session_id, text)

    async def _stream(self, session_id: str, text: str) -> AsyncIterator[str]:
        streamed = False
        try:
            async with aclosing(self.orchestrator.run_turn(session_id, text)) as fragments:
                async for fragment in fragments:
                    streamed = True
                    yield fragment
        except SessionNotFoundError:
            raise
        except Exception as exc:
            if not streamed:
                raise TurnFailedError(str(exc)) from exc
            logger.warning("service.turn.failed session_id={} error={}", session_id, exc)
            yield FAILURE_FRAGMENT

    async def aclose(self) -> None:
        aclose = getattr(self.backend, "aclose", None)
        if aclose is not None:
            await aclose()


def build_service(
    settings: Settings,
    *,
    demo: bool = False,
    provider: ProviderAdapter | None = None,
    backend: AnalyticsBackend | None = None,
) -> ChatService:
    """Wire the store, provider, bridge and backend from settings."""

    if backend is None:
        backend = StaticBackend() if demo else ThoughtSpotBackend.from_settings(settings)
    if provider is None:
        provider = build_provider(settings)
    store = ConversationStore(
        max_sessions=settings.max_sessions,
        session_ttl_seconds=settings.session_ttl_seconds,
        max_turns=settings.max_turns,
    )
    bridge = ToolBridge(
        backend,
        context_window_turns=settings.context_window_turns,
        timeout_seconds=settings.collaborator_timeout_seconds,
    )
    orchestrator = StreamingOrchestrator(
        store=store,
        provider=provider,
        bridge=bridge,
        policy=policy_for(provider.name, tool_name=DATA_LOOKUP_TOOL.wire_name),
        tool_spec=DATA_LOOKUP_TOOL,
    )
    logger.info("service.ready provider={} model={} demo={}", provider.name, provider.model, demo)
    return ChatService(store=store, orchestrator=orchestrator, backend=backend)
