from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from askdata.conversation.models import Answer, ChartType, DataLookupArguments, ToolInvocation, Turn
from askdata.providers.base import ExchangeContext, ProviderAdapter, ProviderEvent, ToolInvocationRequested

SUGGESTIONS = '\n<<END_OF_RESPONSE>>{"suggestions": ["By month?", "By product?", "Top customers?"]}<<END_OF_RESPONSE>>'

type Step = ProviderEvent | Exception


def invocation(
    query: str, chart_hint: ChartType | None = None, invocation_id: str = "call-1"
) -> ToolInvocationRequested:
    return ToolInvocationRequested(
        ToolInvocation(invocation_id=invocation_id, arguments=DataLookupArguments(query=query, chart_hint=chart_hint))
    )


class ScriptedProvider(ProviderAdapter):
    """Replays the same scripted events on every call."""

    name = "scripted"

    def __init__(
        self,
        first: Sequence[Step],
        continuation: Sequence[Step] = (),
        *,
        timeout_seconds: float | None = 5,
    ) -> None:
        super().__init__(model="scripted-model", timeout_seconds=timeout_seconds)
        self.first = list(first)
        self.continuation = list(continuation)
        self.contexts: list[ExchangeContext] = []

    def to_native_messages(self, history: Sequence[Turn]) -> list[dict[str, Any]]:
        return [{"role": turn.role} for turn in history]

    async def _first_response(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        self.contexts.append(context)
        for step in self.first:
            if isinstance(step, Exception):
                raise step
            yield step

    async def _continuation(self, context: ExchangeContext) -> AsyncIterator[ProviderEvent]:
        self.contexts.append(context)
        for step in self.continuation:
            if isinstance(step, Exception):
                raise step
            yield step


@dataclass
class FakeBackend:
    questions: list[str] = field(default_factory=lambda: ["total revenue by region"])
    answer: Answer | None = field(
        default_factory=lambda: Answer(question="total revenue by region", tabular_data="region,revenue\nEMEA,10\n")
    )
    reference: str = "https://ts.example.com/#/pinboard/lb-1"
    error: Exception | None = None
    compute_delay: float = 0.0
    resolve_calls: list[tuple[str, str]] = field(default_factory=list)
    compute_calls: list[tuple[str, ChartType | None]] = field(default_factory=list)
    publish_calls: list[tuple[str, list[Answer]]] = field(default_factory=list)

    async def resolve_questions(self, query: str, context: str) -> list[str]:
        self.resolve_calls.append((query, context))
        if self.error is not None:
            raise self.error
        return list(self.questions)

    async def compute_answer(self, question: str, chart_hint: ChartType | None = None) -> Answer | None:
        self.compute_calls.append((question, chart_hint))
        if self.compute_delay:
            await asyncio.sleep(self.compute_delay)
        return self.answer

    async def publish_visualization(self, title: str, answers: Sequence[Answer]) -> str:
        self.publish_calls.append((title, list(answers)))
        return self.reference
