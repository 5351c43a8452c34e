import asyncio
from collections.abc import AsyncIterator

import pytest
from fakes import ScriptedProvider, invocation

from askdata.conversation.models import ToolInvocationTurn, ToolResult, ToolResultTurn, UserTurn
from askdata.errors import ProviderError
from askdata.policy import SystemPolicy
from askdata.providers.base import (
    EndOfTurn,
    Exchange,
    ExchangeContext,
    ProviderEvent,
    TextFragment,
    ToolInvocationRequested,
)
from askdata.tools.spec import DATA_LOOKUP_TOOL


def _context(policy: SystemPolicy) -> ExchangeContext:
    return ExchangeContext(history=(UserTurn(text="hi"),), policy=policy, tool_spec=DATA_LOOKUP_TOOL)


async def _source(*events: ProviderEvent, delay: float = 0.0) -> AsyncIterator[ProviderEvent]:
    for event in events:
        if delay:
            await asyncio.sleep(delay)
        yield event


@pytest.mark.asyncio
async def test_exchange_stops_after_tool_invocation(policy: SystemPolicy) -> None:
    exchange = Exchange(
        _context(policy),
        _source(TextFragment("Let me "), TextFragment(""), TextFragment("check."), invocation("q"), TextFragment("x")),
    )

    events = [event async for event in exchange]

    assert [type(event) for event in events] == [TextFragment, TextFragment, ToolInvocationRequested]
    assert exchange.text == "Let me check."
    assert exchange.invocation is not None
    assert exchange.invocation.invocation_id == "call-1"


@pytest.mark.asyncio
async def test_exchange_ends_with_end_of_turn(policy: SystemPolicy) -> None:
    exchange = Exchange(_context(policy), _source(TextFragment("Hello")))

    events = [event async for event in exchange]

    assert events == [TextFragment("Hello"), EndOfTurn()]
    assert exchange.invocation is None


@pytest.mark.asyncio
async def test_exchange_is_consumed_once(policy: SystemPolicy) -> None:
    exchange = Exchange(_context(policy), _source(TextFragment("Hello")))
    _ = [event async for event in exchange]

    with pytest.raises(ProviderError):
        async for _event in exchange:
            pass


@pytest.mark.asyncio
async def test_exchange_times_out_between_events(policy: SystemPolicy) -> None:
    exchange = Exchange(_context(policy), _source(TextFragment("slow"), delay=1), timeout_seconds=0.01)

    with pytest.raises(ProviderError, match="model_timeout"):
        async for _event in exchange:
            pass


@pytest.mark.asyncio
async def test_resume_extends_history_with_tool_turns(policy: SystemPolicy) -> None:
    provider = ScriptedProvider([TextFragment("Checking. "), invocation("revenue")], [TextFragment("Done.")])
    exchange = provider.start_exchange([UserTurn(text="revenue?")], policy, DATA_LOOKUP_TOOL)
    _ = [event async for event in exchange]

    continuation = provider.resume(exchange, ToolResult(invocation_id="call-1"))
    events = [event async for event in continuation]

    assert events == [TextFragment("Done."), EndOfTurn()]
    context = provider.contexts[-1]
    assert context.continuation
    assert isinstance(context.history[1], ToolInvocationTurn)
    assert context.history[1].preamble == "Checking. "
    assert isinstance(context.history[2], ToolResultTurn)


@pytest.mark.asyncio
async def test_resume_rejects_mismatched_result(policy: SystemPolicy) -> None:
    provider = ScriptedProvider([invocation("revenue")])
    exchange = provider.start_exchange([UserTurn(text="revenue?")], policy, DATA_LOOKUP_TOOL)
    _ = [event async for event in exchange]

    with pytest.raises(ProviderError):
        provider.resume(exchange, ToolResult(invocation_id="other"))


def test_resume_requires_an_invocation(policy: SystemPolicy) -> None:
    provider = ScriptedProvider([TextFragment("hi")])
    exchange = provider.start_exchange([UserTurn(text="hi")], policy, DATA_LOOKUP_TOOL)

    with pytest.raises(ProviderError):
        provider.resume(exchange, ToolResult(invocation_id="call-1"))
