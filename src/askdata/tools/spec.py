"""The data lookup tool definition."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from askdata.conversation.models import DATA_LOOKUP_TOOL_NAME, ChartType, DataLookupArguments
from askdata.errors import ProviderError


class DataLookupInput(BaseModel):
    """Arguments the model may pass to the data lookup tool."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(
        ...,
        min_length=1,
        description="The user's query that will be answered with a single, targeted visualization.",
    )
    chart_type: ChartType | None = Field(
        default=None,
        description=(
            "Optional. The desired type of chart to visualize the data. "
            "Defaults to the best fit if not specified."
        ),
    )

    @field_validator("chart_type", mode="before")
    @classmethod
    def _drop_unknown_chart(cls, value: object) -> ChartType | None:
        return ChartType.parse(value)

    def to_arguments(self) -> DataLookupArguments:
        return DataLookupArguments(query=self.query, chart_hint=self.chart_type)


@dataclass(frozen=True)
class ToolSpec:
    """Name, description and argument schema of the one tool the model sees."""

    name: str
    wire_name: str
    description: str
    input_model: type[DataLookupInput]

    def parameters(self) -> dict[str, Any]:
        schema = _inline_refs(self.input_model.model_json_schema())
        schema.pop("title", None)
        schema.pop("description", None)
        return schema

    def parse_arguments(self, raw: object) -> DataLookupArguments:
        """Validate untrusted model arguments."""
        try:
            return self.input_model.model_validate(raw).to_arguments()
        except ValidationError as exc:
            raise ProviderError(f"malformed {self.name} arguments: {exc.error_count()} error(s)") from exc


def to_wire_name(name: str) -> str:
    """Tool names on the wire must be plain identifiers."""
    return name.replace("-", "_").replace(".", "_")


DATA_LOOKUP_TOOL = ToolSpec(
    name=DATA_LOOKUP_TOOL_NAME,
    wire_name=to_wire_name(DATA_LOOKUP_TOOL_NAME),
    description=(
        "Given a textual query, this tool gets the single most relevant answer and an associated "
        "visualization from a relational data warehouse. It returns the data for the single best "
        "question that answers the user's query."
    ),
    input_model=DataLookupInput,
)


def _inline_refs(schema: dict[str, Any]) -> dict[str, Any]:
    defs = schema.pop("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                target = deepcopy(defs[ref.removeprefix("#/$defs/")])
                target.pop("title", None)
                merged = {key: value for key, value in node.items() if key != "$ref"}
                return resolve({**target, **merged})
            return {key: resolve(value) for key, value in node.items()}
        if isinstance(node, list):
            return [resolve(item) for item in node]
        return node

    return resolve(schema)
