"""Bridge between model tool calls and the analytics backend."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from loguru import logger

from askdata.analytics.base import AnalyticsBackend
from askdata.conversation.models import ToolInvocation, ToolResult, Turn, history_window

T = TypeVar("T")

type Emit = Callable[[str], None]

NO_QUESTION_MESSAGE = (
    "Sorry, I could not determine a specific data question to ask based on your query. "
    "Please try rephrasing it."
)
NO_ANSWER_MESSAGE = 'Sorry, I was unable to retrieve data for the question: "{question}".'
SEARCHING_MESSAGE = 'Searching for an answer to: "{question}"...'
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while trying to fetch data. Please try again."


def _shorten_text(text: str, width: int = 60, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


class ToolBridge:
    """Run one data lookup against the backend, one question per call.

    Progress and apologies go to ``emit`` so a slow lookup never looks like a
    stalled stream. Backend failures never escape: they become an apology and
    an empty result, and an empty result ends the turn without another model
    call.
    """

    def __init__(
        self,
        backend: AnalyticsBackend,
        *,
        context_window_turns: int = 2,
        timeout_seconds: float | None = 60,
    ) -> None:
        self._backend = backend
        self._context_window_turns = context_window_turns
        self._timeout_seconds = timeout_seconds

    async def invoke(self, invocation: ToolInvocation, history: Sequence[Turn], emit: Emit) -> ToolResult:
        empty = ToolResult(invocation_id=invocation.invocation_id)
        arguments = invocation.arguments
        logger.info(
            "tool.call.start name={} id={} query={} chart={}",
            invocation.tool_name,
            invocation.invocation_id,
            _shorten_text(arguments.query),
            arguments.chart_hint or "-",
        )
        start = time.monotonic()
        try:
            context = history_window(history, self._context_window_turns)
            questions = await self._call(self._backend.resolve_questions(arguments.query, context))
            if not questions:
                emit(_status(NO_QUESTION_MESSAGE))
                return empty

            question = questions[0]
            logger.debug("tool.call.question id={} question={}", invocation.invocation_id, question)
            emit(_status(SEARCHING_MESSAGE.format(question=question)))

            answer = await self._call(self._backend.compute_answer(question, arguments.chart_hint))
            if answer is None:
                emit(_status(NO_ANSWER_MESSAGE.format(question=question)))
                return empty

            reference = await self._call(self._backend.publish_visualization(arguments.query, [answer]))
            return ToolResult(invocation_id=invocation.invocation_id, payload=(answer.with_reference(reference),))
        except Exception:
            # The backend is an external boundary; its failures end the turn politely.
            logger.exception("tool.call.error name={} id={}", invocation.tool_name, invocation.invocation_id)
            emit(_status(UNEXPECTED_ERROR_MESSAGE))
            return empty
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", invocation.tool_name, duration * 1000)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        async with asyncio.timeout(self._timeout_seconds):
            return await awaitable


def _status(message: str) -> str:
    return f"{message}\n\n"
