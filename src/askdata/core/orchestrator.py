"""Per-turn streaming state machine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from askdata.conversation.models import (
    AssistantTurn,
    ToolInvocation,
    ToolInvocationTurn,
    ToolResult,
    ToolResultTurn,
    Turn,
    UserTurn,
)
from askdata.conversation.store import ConversationStore
from askdata.policy import SystemPolicy
from askdata.providers.base import Exchange, ProviderAdapter, TextFragment
from askdata.suggestions import parse_response
from askdata.tools.bridge import ToolBridge
from askdata.tools.spec import DATA_LOOKUP_TOOL, ToolSpec


class TurnState(StrEnum):
    AWAITING_USER_TURN = "awaiting_user_turn"
    MODEL_GENERATING = "model_generating"
    TOOL_PENDING = "tool_pending"
    MODEL_CONTINUING = "model_continuing"
    TURN_COMPLETE = "turn_complete"
    ABORTED = "aborted"


@dataclass
class _TurnRun:
    session_id: str
    state: TurnState = TurnState.AWAITING_USER_TURN
    buffer: list[str] = field(default_factory=list)
    fragments: int = 0

    def take_text(self) -> str:
        text = "".join(self.buffer)
        self.buffer.clear()
        return text


class StreamingOrchestrator:
    """Drive one user turn from model call through tool use to final text.

    ``run_turn`` yields text fragments in generation order. Nothing the model
    writes is shown without also being kept for history, and history only ever
    receives whole steps: the user turn up front, the tool invocation together
    with its result, and the assistant text once the model has finished. An
    aborted turn leaves no assistant turn behind.
    """

    def __init__(
        self,
        *,
        store: ConversationStore,
        provider: ProviderAdapter,
        bridge: ToolBridge,
        policy: SystemPolicy,
        tool_spec: ToolSpec = DATA_LOOKUP_TOOL,
    ) -> None:
        self._store = store
        self._provider = provider
        self._bridge = bridge
        self._policy = policy
        self._tool_spec = tool_spec

    async def run_turn(self, session_id: str, text: str) -> AsyncIterator[str]:
        async with self._store.lease(session_id):
            run = _TurnRun(session_id=session_id)
            try:
                async with aclosing(self._run(run, text)) as fragments:
                    async for fragment in fragments:
                        yield fragment
            except (asyncio.CancelledError, GeneratorExit):
                self._transition(run, TurnState.ABORTED)
                logger.info("orchestrator.turn.cancelled session_id={} fragments={}", session_id, run.fragments)
                raise
            except Exception:
                self._transition(run, TurnState.ABORTED)
                logger.exception("orchestrator.turn.error session_id={}", session_id)
                raise

    async def _run(self, run: _TurnRun, text: str) -> AsyncIterator[str]:
        self._store.append(run.session_id, UserTurn(text=text))
        history = self._store.read(run.session_id)

        self._transition(run, TurnState.MODEL_GENERATING)
        exchange = self._provider.start_exchange(history, self._policy, self._tool_spec)
        async with aclosing(self._stream(run, exchange)) as fragments:
            async for fragment in fragments:
                yield fragment

        if exchange.invocation is None:
            self._finish(run, run.take_text())
            return

        self._transition(run, TurnState.TOOL_PENDING)
        invocation_turn = ToolInvocationTurn(invocation=exchange.invocation, preamble=exchange.text)
        result: ToolResult | None = None
        async with aclosing(self._run_tool(exchange.invocation, history)) as items:
            async for item in items:
                if isinstance(item, ToolResult):
                    result = item
                else:
                    yield self._forward(run, item)

        if result is None or result.is_empty:
            # Nothing to reason over; the status text the user saw is the answer.
            self._finish(run, run.take_text(), check_policy=False)
            return

        self._store.commit(run.session_id, (invocation_turn, ToolResultTurn(result=result)))
        run.take_text()

        self._transition(run, TurnState.MODEL_CONTINUING)
        continuation = self._provider.resume(exchange, result)
        async with aclosing(self._stream(run, continuation)) as fragments:
            async for fragment in fragments:
                yield fragment
        self._finish(run, run.take_text())

    async def _stream(self, run: _TurnRun, exchange: Exchange) -> AsyncIterator[str]:
        async with aclosing(exchange):
            async for event in exchange:
                if isinstance(event, TextFragment):
                    yield self._forward(run, event.text)

    async def _run_tool(self, invocation: ToolInvocation, history: Sequence[Turn]) -> AsyncIterator[str | ToolResult]:
        """Run the bridge, yielding its status text as soon as it is emitted."""
        statuses: asyncio.Queue[str] = asyncio.Queue()
        task = asyncio.create_task(self._bridge.invoke(invocation, history, statuses.put_nowait))
        getter: asyncio.Future[str] | None = None
        try:
            while not task.done():
                getter = asyncio.ensure_future(statuses.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield getter.result()
                else:
                    getter.cancel()
                getter = None
            while not statuses.empty():
                yield statuses.get_nowait()
            yield task.result()
        finally:
            if getter is not None:
                getter.cancel()
            if not task.done():
                task.cancel()

    def _forward(self, run: _TurnRun, fragment: str) -> str:
        run.buffer.append(fragment)
        run.fragments += 1
        return fragment

    def _finish(self, run: _TurnRun, text: str, *, check_policy: bool = True) -> None:
        self._store.append(run.session_id, AssistantTurn(text=text))
        self._transition(run, TurnState.TURN_COMPLETE)
        if not check_policy:
            return
        parsed = parse_response(text)
        if not parsed.ok:
            logger.warning("policy.suggestions.violation session_id={} reason={}", run.session_id, parsed.violation)

    @staticmethod
    def _transition(run: _TurnRun, state: TurnState) -> None:
        logger.debug("orchestrator.state session_id={} from={} to={}", run.session_id, run.state, state)
        run.state = state
