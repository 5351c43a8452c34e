import asyncio
from collections.abc import AsyncIterator

import pytest
from fakes import SUGGESTIONS, FakeBackend, ScriptedProvider, invocation

from askdata.conversation.models import (
    AssistantTurn,
    ChartType,
    ToolInvocationTurn,
    ToolResultTurn,
    UserTurn,
)
from askdata.conversation.store import ConversationStore
from askdata.core.orchestrator import StreamingOrchestrator
from askdata.errors import ProviderError
from askdata.policy import SystemPolicy
from askdata.providers.base import TextFragment
from askdata.tools.bridge import NO_QUESTION_MESSAGE, SEARCHING_MESSAGE, ToolBridge


def _orchestrator(
    store: ConversationStore,
    provider: ScriptedProvider,
    policy: SystemPolicy,
    backend: FakeBackend | None = None,
) -> StreamingOrchestrator:
    bridge = ToolBridge(backend or FakeBackend(), timeout_seconds=5)
    return StreamingOrchestrator(store=store, provider=provider, bridge=bridge, policy=policy)


async def _collect(fragments: AsyncIterator[str]) -> list[str]:
    return [fragment async for fragment in fragments]


@pytest.mark.asyncio
async def test_plain_answer_is_streamed_and_recorded(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    provider = ScriptedProvider([TextFragment("Hello! "), TextFragment("Ask me about your data." + SUGGESTIONS)])
    orchestrator = _orchestrator(store, provider, policy)

    fragments = await _collect(orchestrator.run_turn(session_id, "hi"))

    assert "".join(fragments) == "Hello! Ask me about your data." + SUGGESTIONS
    assert store.read(session_id) == (
        UserTurn(text="hi"),
        AssistantTurn(text="Hello! Ask me about your data." + SUGGESTIONS),
    )


@pytest.mark.asyncio
async def test_tool_turn_history_order(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    backend = FakeBackend()
    provider = ScriptedProvider(
        [TextFragment("Let me check. "), invocation("total revenue by region")],
        [TextFragment("EMEA leads with 10."), TextFragment(SUGGESTIONS)],
    )
    orchestrator = _orchestrator(store, provider, policy, backend)

    fragments = await _collect(orchestrator.run_turn(session_id, "revenue by region?"))

    assert fragments == [
        "Let me check. ",
        SEARCHING_MESSAGE.format(question="total revenue by region") + "\n\n",
        "EMEA leads with 10.",
        SUGGESTIONS,
    ]
    turns = store.read(session_id)
    assert [turn.role for turn in turns] == ["user", "tool-invocation", "tool-result", "assistant"]
    assert isinstance(turns[1], ToolInvocationTurn)
    assert turns[1].preamble == "Let me check. "
    assert isinstance(turns[2], ToolResultTurn)
    assert turns[2].result.invocation_id == turns[1].invocation.invocation_id
    assert turns[2].result.payload[0].liveboard_reference == backend.reference
    assert turns[3] == AssistantTurn(text="EMEA leads with 10." + SUGGESTIONS)

    continuation = provider.contexts[-1]
    assert continuation.continuation
    assert [turn.role for turn in continuation.history] == ["user", "tool-invocation", "tool-result"]


@pytest.mark.asyncio
async def test_unresolvable_query_ends_turn_with_one_apology(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    provider = ScriptedProvider([invocation("asdfgh")], [TextFragment("never sent")])
    orchestrator = _orchestrator(store, provider, policy, FakeBackend(questions=[]))

    fragments = await _collect(orchestrator.run_turn(session_id, "asdfgh"))

    apology = NO_QUESTION_MESSAGE + "\n\n"
    assert fragments == [apology]
    assert store.read(session_id) == (UserTurn(text="asdfgh"), AssistantTurn(text=apology))
    assert len(provider.contexts) == 1


@pytest.mark.asyncio
async def test_provider_failure_leaves_no_assistant_turn(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    provider = ScriptedProvider([ProviderError("rate limited")])
    orchestrator = _orchestrator(store, provider, policy)

    with pytest.raises(ProviderError):
        await _collect(orchestrator.run_turn(session_id, "revenue?"))

    assert store.read(session_id) == (UserTurn(text="revenue?"),)


@pytest.mark.asyncio
async def test_rewritten_query_reaches_the_resolver(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    store.append(session_id, UserTurn(text="Show me the last 100 loads"))
    store.append(session_id, AssistantTurn(text="Here are the last 100 loads."))
    backend = FakeBackend(questions=["count of loads by eta status"])
    provider = ScriptedProvider(
        [invocation("show the COUNT of loads BY ETA status", ChartType.BAR)],
        [TextFragment("Most loads are on time.")],
    )
    orchestrator = _orchestrator(store, provider, policy, backend)

    await _collect(orchestrator.run_turn(session_id, "as a bar chart"))

    query, context = backend.resolve_calls[0]
    assert query == "show the COUNT of loads BY ETA status"
    assert context.endswith("user: as a bar chart")
    assert backend.compute_calls == [("count of loads by eta status", ChartType.BAR)]


@pytest.mark.asyncio
async def test_cancelled_turn_leaves_no_dangling_invocation(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    provider = ScriptedProvider([invocation("revenue")], [TextFragment("never sent")])
    orchestrator = _orchestrator(store, provider, policy, FakeBackend(compute_delay=10))

    turn = orchestrator.run_turn(session_id, "revenue?")
    first = await anext(turn)
    await turn.aclose()
    await asyncio.sleep(0)

    assert first.startswith("Searching for an answer to:")
    assert store.read(session_id) == (UserTurn(text="revenue?"),)

    provider.first = [TextFragment("Still here.")]
    fragments = await _collect(orchestrator.run_turn(session_id, "hello?"))
    assert fragments == ["Still here."]


@pytest.mark.asyncio
async def test_concurrent_turns_on_one_session_are_serialized(store: ConversationStore, policy: SystemPolicy) -> None:
    session_id = store.create()
    provider = ScriptedProvider([TextFragment("one "), TextFragment("answer")])
    orchestrator = _orchestrator(store, provider, policy)

    await asyncio.gather(
        _collect(orchestrator.run_turn(session_id, "first")),
        _collect(orchestrator.run_turn(session_id, "second")),
    )

    assert [turn.role for turn in store.read(session_id)] == ["user", "assistant", "user", "assistant"]


@pytest.mark.asyncio
async def test_failure_while_continuing_keeps_tool_history(
    store: ConversationStore, policy: SystemPolicy
) -> None:
    session_id = store.create()
    provider = ScriptedProvider(
        [invocation("total revenue by region")],
        [TextFragment("EMEA "), ProviderError("stream reset")],
    )
    orchestrator = _orchestrator(store, provider, policy)

    fragments: list[str] = []
    with pytest.raises(ProviderError):
        async for fragment in orchestrator.run_turn(session_id, "revenue by region?"):
            fragments.append(fragment)

    assert fragments[-1] == "EMEA "
    assert [turn.role for turn in store.read(session_id)] == ["user", "tool-invocation", "tool-result"]

    provider.first = [TextFragment("Anything else?")]
    assert await _collect(orchestrator.run_turn(session_id, "thanks")) == ["Anything else?"]
    assert [turn.role for turn in store.read(session_id)] == [
        "user",
        "tool-invocation",
        "tool-result",
        "user",
        "assistant",
    ]
