"""Provider-neutral model exchange."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from dataclasses import dataclass, replace
from typing import Any, ClassVar

from loguru import logger

from askdata.conversation.models import ToolInvocation, ToolInvocationTurn, ToolResult, ToolResultTurn, Turn
from askdata.errors import ProviderError
from askdata.policy import SystemPolicy
from askdata.tools.spec import ToolSpec


@dataclass(frozen=True)
class TextFragment:
    text: str


@dataclass(frozen=True)
class ToolInvocationRequested:
    invocation: ToolInvocation


@dataclass(frozen=True)
class EndOfTurn:
    pass


type ProviderEvent = TextFragment | ToolInvocationRequested | EndOfTurn


@dataclass(frozen=True)
class ExchangeContext:
    """Everything needed to (re)issue the model call for one exchange."""

    history: tuple[Turn, ...]
    policy: SystemPolicy
    tool_spec: ToolSpec
    continuation: bool = False


class Exchange:
    """One model call-and-stream cycle.

    Iterate it once. Events come in generation order and the exchange stops
    after the first ``ToolInvocationRequested`` or ``EndOfTurn``. Each event
    must arrive within ``timeout_seconds``.
    """

    def __init__(
        self,
        context: ExchangeContext,
        source: AsyncIterator[ProviderEvent],
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self.context = context
        self.invocation: ToolInvocation | None = None
        self._source = source
        self._timeout_seconds = timeout_seconds
        self._text_parts: list[str] = []
        self._iterator: AsyncGenerator[ProviderEvent, None] | None = None

    @property
    def text(self) -> str:
        """Text produced by this exchange so far."""
        return "".join(self._text_parts)

    def __aiter__(self) -> AsyncIterator[ProviderEvent]:
        if self._iterator is not None:
            raise ProviderError("exchange already consumed")
        self._iterator = self._events()
        return self._iterator

    async def aclose(self) -> None:
        """Stop the exchange and release the underlying provider stream."""
        if self._iterator is not None:
            await self._iterator.aclose()
            return
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def _events(self) -> AsyncGenerator[ProviderEvent, None]:
        try:
            while True:
                try:
                    async with asyncio.timeout(self._timeout_seconds):
                        event = await anext(self._source)
                except StopAsyncIteration:
                    yield EndOfTurn()
                    return
                except TimeoutError as exc:
                    raise ProviderError(f"model_timeout: no response within {self._timeout_seconds}s") from exc

                if isinstance(event, TextFragment):
                    if not event.text:
                        continue
                    self._text_parts.append(event.text)
                elif isinstance(event, ToolInvocationRequested):
                    self.invocation = event.invocation
                yield event
                if not isinstance(event, TextFragment):
                    return
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()


class ProviderAdapter(ABC):
    """A chat model backend with tool calling and streaming.

    Subclasses shape requests and decode responses for one provider. The first
    call of an exchange may produce text or a tool invocation; the call made by
    ``resume`` always produces a text stream.
    """

    name: ClassVar[str] = "base"

    def __init__(self, *, model: str, max_tokens: int = 4096, timeout_seconds: float | None = 90) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    def start_exchange(self, history: Sequence[Turn], policy: SystemPolicy, tool_spec: ToolSpec) -> Exchange:
        context = ExchangeContext(history=tuple(history), policy=policy, tool_spec=tool_spec)
        logger.info("provider.exchange.start provider={} model={} turns={}", self.name, self.model, len(history))
        return Exchange(context, self._first_response(context), timeout_seconds=self.timeout_seconds)

    def resume(self, exchange: Exchange, tool_result: ToolResult) -> Exchange:
        invocation = exchange.invocation
        if invocation is None:
            raise ProviderError("cannot resume an exchange that did not request a tool")
        if tool_result.invocation_id != invocation.invocation_id:
            raise ProviderError(
                f"tool result {tool_result.invocation_id} does not match invocation {invocation.invocation_id}"
            )
        history = (
            *exchange.context.history,
            ToolInvocationTurn(invocation=invocation, preamble=exchange.text),
            ToolResultTurn(result=tool_result),
        )
        context = replace(exchange.context, history=history, continuation=True)
        logger.info("provider.exchange.resume provider={} invocation={}", self.name, invocation.invocation_id)
        return Exchange(context, self._continuation(context), timeout_seconds=self.timeout_seconds)

    @abstractmethod
    def to_native_messages(self, history: Sequence[Turn]) -> list[dict[str, Any]]:
        """Render turns in the provider's message shape."""

    @abstractmethod
    def _first_response(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        """Decode the first model call into provider events."""

    @abstractmethod
    def _continuation(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        """Stream the model's answer after a tool result."""
