"""ThoughtSpot REST v2 backend."""

from __future__ import annotations

import asyncio
import json
import re
import time
from collections.abc import Sequence
from typing import Any

import httpx
from loguru import logger

from askdata.config.settings import Settings
from askdata.conversation.models import Answer, ChartType
from askdata.errors import BackendNotConfiguredError, CollaboratorError

DECOMPOSE_PATH = "/api/rest/2.0/ai/analytical-questions"
SINGLE_ANSWER_PATH = "/api/rest/2.0/ai/answer/create"
EXPORT_REPORT_PATH = "/api/rest/2.0/report/answer"
EXPORT_ANSWER_TML_PATH = "/api/rest/2.0/metadata/answer/tml"
IMPORT_TML_PATH = "/api/rest/2.0/metadata/tml/import"
TILE_SIZE = "MEDIUM_SMALL"
SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_host(host: str) -> str:
    host = host.strip().rstrip("/")
    if not SCHEME_RE.match(host):
        host = f"https://{host}"
    return host


def build_liveboard_tml(name: str, answers: Sequence[Answer]) -> dict[str, Any]:
    """One visualization and one tile per answer, in answer order."""
    visualizations = []
    tiles = []
    for idx, answer in enumerate(answers):
        viz_id = f"Viz_{idx}"
        answer_tml = dict(answer.visualization.get("answer", {}))
        answer_tml["name"] = answer.question
        visualizations.append({"id": viz_id, "answer": answer_tml})
        tiles.append({"visualization_id": viz_id, "size": TILE_SIZE})
    return {"liveboard": {"name": name, "visualizations": visualizations, "layout": {"tiles": tiles}}}


class ThoughtSpotBackend:
    """Question resolution, answers and liveboards from one ThoughtSpot data source."""

    def __init__(
        self,
        *,
        host: str,
        token: str,
        datasource_id: str,
        timeout_seconds: float = 60,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.host = normalize_host(host)
        self.datasource_id = datasource_id
        self._client = client or httpx.AsyncClient(
            base_url=self.host,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=timeout_seconds,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ThoughtSpotBackend:
        missing = [
            name
            for name in ("thoughtspot_host", "thoughtspot_token", "thoughtspot_datasource_id")
            if not getattr(settings, name)
        ]
        if missing:
            raise BackendNotConfiguredError(f"missing settings: {', '.join(missing)}")
        return cls(
            host=settings.thoughtspot_host or "",
            token=settings.thoughtspot_token or "",
            datasource_id=settings.thoughtspot_datasource_id or "",
            timeout_seconds=settings.collaborator_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def resolve_questions(self, query: str, context: str) -> list[str]:
        start = time.monotonic()
        payload = await self._post_json(
            DECOMPOSE_PATH,
            {
                "nlsRequest": {"query": query},
                "content": [context],
                "worksheetIds": [self.datasource_id],
            },
        )
        logger.debug("thoughtspot.decompose duration={:.3f}ms", (time.monotonic() - start) * 1000)
        response = payload.get("decomposedQueryResponse") or {}
        queries = response.get("decomposedQueries") or []
        return [item["query"] for item in queries if isinstance(item, dict) and item.get("query")]

    async def compute_answer(self, question: str, chart_hint: ChartType | None = None) -> Answer | None:
        body: dict[str, Any] = {"query": question, "metadata_identifier": self.datasource_id}
        if chart_hint is not None:
            body["visualization"] = {"type": chart_hint.value}
        answer = await self._post_json(SINGLE_ANSWER_PATH, body)
        session_identifier = answer.get("session_identifier")
        generation_number = answer.get("generation_number")
        if not session_identifier or generation_number is None:
            logger.info("thoughtspot.answer.empty question={}", question)
            return None

        handle = {"session_identifier": session_identifier, "generation_number": generation_number}
        data, tml = await asyncio.gather(
            self._post_text(EXPORT_REPORT_PATH, {**handle, "file_format": "CSV"}),
            self._post_json(EXPORT_ANSWER_TML_PATH, handle),
        )
        return Answer(question=question, tabular_data=data, visualization=tml)

    async def publish_visualization(self, title: str, answers: Sequence[Answer]) -> str:
        tml = build_liveboard_tml(title, answers)
        payload = await self._post_json(
            IMPORT_TML_PATH,
            {"metadata_tmls": [json.dumps(tml)], "import_policy": "ALL_OR_NONE"},
        )
        try:
            guid = payload[0]["response"]["header"]["id_guid"]
        except (IndexError, KeyError, TypeError) as exc:
            raise CollaboratorError("thoughtspot: liveboard import returned no id") from exc
        return f"{self.host}/#/pinboard/{guid}"

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(path, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"thoughtspot {path}: {exc!s}") from exc
        return response

    async def _post_json(self, path: str, body: dict[str, Any]) -> Any:
        response = await self._post(path, body)
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorError(f"thoughtspot {path}: response is not JSON") from exc

    async def _post_text(self, path: str, body: dict[str, Any]) -> str:
        return (await self._post(path, body)).text
