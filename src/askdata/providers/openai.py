"""OpenAI chat completions adapter."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

import openai
from loguru import logger
from openai import AsyncOpenAI

from askdata.conversation.models import (
    AssistantTurn,
    ToolInvocation,
    ToolInvocationTurn,
    ToolResultTurn,
    Turn,
    UserTurn,
)
from askdata.errors import ProviderError
from askdata.providers.base import (
    EndOfTurn,
    ExchangeContext,
    ProviderAdapter,
    ProviderEvent,
    TextFragment,
    ToolInvocationRequested,
)
from askdata.tools.spec import ToolSpec, to_wire_name


@dataclass
class _PendingCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


class OpenAIProvider(ProviderAdapter):
    """OpenAI adapter.

    Tool calls are interleaved with the text stream as argument deltas; they are
    collected while text is forwarded and emitted once the stream is drained.
    """

    name: ClassVar[str] = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        max_tokens: int = 4096,
        timeout_seconds: float | None = 90,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, timeout_seconds=timeout_seconds)
        self._client = client

    @staticmethod
    def tool_param(spec: ToolSpec) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {"name": spec.wire_name, "description": spec.description, "parameters": spec.parameters()},
        }

    async def _first_response(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        calls: dict[int, _PendingCall] = {}
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=self._request_messages(context),
                tools=[self.tool_param(context.tool_spec)],
                tool_choice="auto",
                parallel_tool_calls=False,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield TextFragment(delta.content)
                for call_delta in delta.tool_calls or ():
                    pending = calls.setdefault(call_delta.index, _PendingCall())
                    if call_delta.id:
                        pending.id = call_delta.id
                    function = call_delta.function
                    if function is None:
                        continue
                    if function.name:
                        pending.name += function.name
                    if function.arguments:
                        pending.arguments += function.arguments
        except openai.OpenAIError as exc:
            raise ProviderError(f"openai: {exc!s}") from exc

        if calls:
            if len(calls) > 1:
                logger.warning("provider.openai.extra_tool_calls count={} kept=1", len(calls))
            yield ToolInvocationRequested(self._decode_call(calls[min(calls)], context.tool_spec))
            return
        yield EndOfTurn()

    async def _continuation(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=self._request_messages(context),
                stream=True,
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield TextFragment(chunk.choices[0].delta.content)
        except openai.OpenAIError as exc:
            raise ProviderError(f"openai: {exc!s}") from exc
        yield EndOfTurn()

    @staticmethod
    def _decode_call(pending: _PendingCall, spec: ToolSpec) -> ToolInvocation:
        if pending.name != spec.wire_name:
            raise ProviderError(f"openai: unknown tool requested: {pending.name}")
        if not pending.id:
            raise ProviderError("openai: tool call without id")
        try:
            raw_arguments = json.loads(pending.arguments or "{}")
        except json.JSONDecodeError as exc:
            raise ProviderError("openai: tool arguments are not valid JSON") from exc
        return ToolInvocation(invocation_id=pending.id, arguments=spec.parse_arguments(raw_arguments))

    def _request_messages(self, context: ExchangeContext) -> list[dict[str, Any]]:
        return [{"role": "system", "content": context.policy.text}, *self.to_native_messages(context.history)]

    def to_native_messages(self, history: Sequence[Turn]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in history:
            match turn:
                case UserTurn(text=text):
                    messages.append({"role": "user", "content": text})
                case AssistantTurn(text=text):
                    messages.append({"role": "assistant", "content": text})
                case ToolInvocationTurn(invocation=invocation, preamble=preamble):
                    messages.append({
                        "role": "assistant",
                        "content": preamble or None,
                        "tool_calls": [
                            {
                                "id": invocation.invocation_id,
                                "type": "function",
                                "function": {
                                    "name": to_wire_name(invocation.tool_name),
                                    "arguments": json.dumps(invocation.arguments.to_payload(), ensure_ascii=False),
                                },
                            }
                        ],
                    })
                case ToolResultTurn(result=result):
                    messages.append({
                        "role": "tool",
                        "tool_call_id": result.invocation_id,
                        "content": json.dumps(result.to_payload(), ensure_ascii=False),
                    })
        return messages
