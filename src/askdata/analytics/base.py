"""Analytics backend contract used by the tool bridge."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from askdata.conversation.models import Answer, ChartType


@runtime_checkable
class AnalyticsBackend(Protocol):
    async def resolve_questions(self, query: str, context: str) -> list[str]:
        """Decompose ``query`` into concrete data questions, best first."""
        ...

    async def compute_answer(self, question: str, chart_hint: ChartType | None = None) -> Answer | None:
        """Answer one question, or ``None`` when the backend has nothing."""
        ...

    async def publish_visualization(self, title: str, answers: Sequence[Answer]) -> str:
        """Publish answers as a liveboard and return its shareable link."""
        ...
