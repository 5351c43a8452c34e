"""Anthropic messages API adapter."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any, ClassVar

import anthropic
from anthropic import AsyncAnthropic

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


class AnthropicProvider(ProviderAdapter):
    """Claude adapter.

    Tool use arrives in a single non-streamed response, so the first call is a
    plain ``messages.create``. Only the answer after a tool result is streamed.
    """

    name: ClassVar[str] = "anthropic"

    def __init__(
        self,
        client: AsyncAnthropic,
        *,
        model: str,
        max_tokens: int = 4096,
        timeout_seconds: float | None = 90,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, timeout_seconds=timeout_seconds)
        self._client = client

    @staticmethod
    def tool_param(spec: ToolSpec) -> dict[str, Any]:
        return {"name": spec.wire_name, "description": spec.description, "input_schema": spec.parameters()}

    async def _first_response(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=context.policy.text,
                messages=self.to_native_messages(context.history),
                tools=[self.tool_param(context.tool_spec)],
            )
        except anthropic.APIError as exc:
            raise ProviderError(f"anthropic: {exc!s}") from exc

        for block in message.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                yield TextFragment(block.text)
            elif block_type == "tool_use":
                yield ToolInvocationRequested(self._decode_tool_use(block, context.tool_spec))
                return
        yield EndOfTurn()

    async def _continuation(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        try:
            # The history carries tool blocks, so the tool must stay declared; it may not be called again.
            async with self._client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=context.policy.text,
                messages=self.to_native_messages(context.history),
                tools=[self.tool_param(context.tool_spec)],
                tool_choice={"type": "none"},
            ) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        yield TextFragment(event.delta.text)
        except anthropic.APIError as exc:
            raise ProviderError(f"anthropic: {exc!s}") from exc
        yield EndOfTurn()

    @staticmethod
    def _decode_tool_use(block: Any, spec: ToolSpec) -> ToolInvocation:
        if block.name != spec.wire_name:
            raise ProviderError(f"anthropic: unknown tool requested: {block.name}")
        return ToolInvocation(invocation_id=block.id, arguments=spec.parse_arguments(block.input))

    def to_native_messages(self, history: Sequence[Turn]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in history:
            match turn:
                case UserTurn(text=text):
                    messages.append({"role": "user", "content": text})
                case AssistantTurn(text=text):
                    if text.strip():
                        messages.append({"role": "assistant", "content": text})
                case ToolInvocationTurn(invocation=invocation, preamble=preamble):
                    content: list[dict[str, Any]] = []
                    if preamble.strip():
                        content.append({"type": "text", "text": preamble})
                    content.append({
                        "type": "tool_use",
                        "id": invocation.invocation_id,
                        "name": to_wire_name(invocation.tool_name),
                        "input": invocation.arguments.to_payload(),
                    })
                    messages.append({"role": "assistant", "content": content})
                case ToolResultTurn(result=result):
                    messages.append({
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.invocation_id,
                                "content": json.dumps(result.to_payload(), ensure_ascii=False),
                            }
                        ],
                    })
        return messages
