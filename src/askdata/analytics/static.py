"""In-process analytics backend with canned answers."""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from askdata.conversation.models import Answer, ChartType

WORD_PATTERN = re.compile(r"[a-z0-9]+")

DEMO_TABLES: dict[str, str] = {
    "total revenue by region": "region,revenue\nEMEA,1250000\nAMER,2310000\nAPAC,980000\n",
    "count of orders by status": "status,orders\nshipped,1402\npending,311\ncancelled,57\n",
    "monthly revenue trend": "month,revenue\n2024-01,380000\n2024-02,402000\n2024-03,455000\n",
}


@dataclass
class StaticBackend:
    """Match queries against a fixed table set by shared words.

    Used for demos and tests; liveboard links point at ``base_url``.
    """

    tables: Mapping[str, str] = field(default_factory=lambda: dict(DEMO_TABLES))
    base_url: str = "https://demo.askdata.local"
    published: list[tuple[str, tuple[Answer, ...]]] = field(default_factory=list)

    async def resolve_questions(self, query: str, context: str) -> list[str]:
        query_words = set(WORD_PATTERN.findall(query.lower()))
        scored: list[tuple[int, str]] = []
        for question in self.tables:
            overlap = len(query_words & set(WORD_PATTERN.findall(question)))
            if overlap:
                scored.append((overlap, question))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [question for _, question in scored]

    async def compute_answer(self, question: str, chart_hint: ChartType | None = None) -> Answer | None:
        data = self.tables.get(question)
        if data is None:
            return None
        chart = chart_hint or ChartType.COLUMN
        return Answer(question=question, tabular_data=data, visualization={"chart": {"type": chart.value}})

    async def publish_visualization(self, title: str, answers: Sequence[Answer]) -> str:
        self.published.append((title, tuple(answers)))
        return f"{self.base_url}/#/pinboard/{uuid.uuid4()}"
