"""Conversation turns and the session registry."""

from .models import (
    DATA_LOOKUP_TOOL_NAME,
    Answer,
    AssistantTurn,
    ChartType,
    DataLookupArguments,
    ToolInvocation,
    ToolInvocationTurn,
    ToolResult,
    ToolResultTurn,
    Turn,
    UserTurn,
    history_window,
)
from .store import ConversationStore, current_session

__all__ = [
    "DATA_LOOKUP_TOOL_NAME",
    "Answer",
    "AssistantTurn",
    "ChartType",
    "ConversationStore",
    "DataLookupArguments",
    "ToolInvocation",
    "ToolInvocationTurn",
    "ToolResult",
    "ToolResultTurn",
    "Turn",
    "UserTurn",
    "current_session",
    "history_window",
]
