"""Turn model shared by the store, providers and orchestrator."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, ClassVar, Literal

DATA_LOOKUP_TOOL_NAME = "data-lookup"


class ChartType(StrEnum):
    """Visualization forms the analytics backend can render."""

    COLUMN = "COLUMN"
    BAR = "BAR"
    LINE = "LINE"
    PIE = "PIE"
    AREA = "AREA"
    SCATTER = "SCATTER"
    BUBBLE = "BUBBLE"
    HEATMAP = "HEATMAP"
    TABLE = "TABLE"

    @classmethod
    def parse(cls, raw: object) -> ChartType | None:
        """Return the hint for ``raw`` or ``None`` when it is empty or unknown."""
        if not isinstance(raw, str) or not raw.strip():
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Answer:
    """One computed answer from the analytics backend."""

    question: str
    tabular_data: str
    visualization: dict[str, Any] = field(default_factory=dict)
    liveboard_reference: str | None = None

    def with_reference(self, reference: str) -> Answer:
        return replace(self, liveboard_reference=reference)

    def to_payload(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "data": self.tabular_data,
            "visualization": self.visualization,
            "liveboard": self.liveboard_reference,
        }


@dataclass(frozen=True)
class DataLookupArguments:
    query: str
    chart_hint: ChartType | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": self.query}
        if self.chart_hint is not None:
            payload["chart_type"] = self.chart_hint.value
        return payload


@dataclass(frozen=True)
class ToolInvocation:
    """A model request to run the data lookup tool."""

    invocation_id: str
    arguments: DataLookupArguments
    tool_name: str = DATA_LOOKUP_TOOL_NAME


@dataclass(frozen=True)
class ToolResult:
    invocation_id: str
    payload: tuple[Answer, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.payload

    def to_payload(self) -> list[dict[str, Any]]:
        return [answer.to_payload() for answer in self.payload]


@dataclass(frozen=True)
class UserTurn:
    text: str
    role: ClassVar[Literal["user"]] = "user"


@dataclass(frozen=True)
class AssistantTurn:
    text: str
    role: ClassVar[Literal["assistant"]] = "assistant"


@dataclass(frozen=True)
class ToolInvocationTurn:
    """The model asked for the tool. ``preamble`` is text it produced first."""

    invocation: ToolInvocation
    preamble: str = ""
    role: ClassVar[Literal["tool-invocation"]] = "tool-invocation"


@dataclass(frozen=True)
class ToolResultTurn:
    result: ToolResult
    role: ClassVar[Literal["tool-result"]] = "tool-result"


type Turn = UserTurn | AssistantTurn | ToolInvocationTurn | ToolResultTurn


def history_window(turns: Sequence[Turn], size: int = 2) -> str:
    """Render the last ``size`` text turns as ``role: text`` lines."""
    if size <= 0:
        return ""
    lines: list[str] = []
    for turn in reversed(turns):
        if isinstance(turn, (UserTurn, AssistantTurn)) and turn.text.strip():
            lines.append(f"{turn.role}: {turn.text.strip()}")
            if len(lines) >= size:
                break
    return "\n".join(reversed(lines))
