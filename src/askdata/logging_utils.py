"""Process logging for askdata."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from logging import Handler
from typing import Any, Literal, TextIO

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

LEVEL_ENV = "ASKDATA_LOG_LEVEL"


@dataclass(frozen=True)
class _Profile:
    sink: Callable[[], Handler | TextIO]
    default_level: str
    format: str

    def level(self) -> str:
        return os.getenv(LEVEL_ENV, self.default_level).upper()


def _chat_sink() -> Handler:
    # The answer stream owns stdout; log lines go through rich so they do not tear it.
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


_PROFILES: dict[LogProfile, _Profile] = {
    "chat": _Profile(
        sink=_chat_sink,
        default_level="WARNING",
        format="askdata[{extra[session]}] {message}",
    ),
    "default": _Profile(
        sink=lambda: sys.stderr,
        default_level="INFO",
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | askdata session={extra[session]} | "
            "{name}:{line} | {message}"
        ),
    ),
}
_CONFIGURED_PROFILE: LogProfile | None = None


def _inject_session(record: loguru.Record) -> None:
    from askdata.conversation.store import current_session

    record["extra"].setdefault("session", current_session())


def configure_logging(*, profile: LogProfile = "default") -> None:
    """Route loguru output for ``profile``; repeated calls with the same profile are no-ops."""
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    selected = _PROFILES[profile]
    options: dict[str, Any] = {"backtrace": False, "diagnose": False}
    logger.remove()
    logger.add(selected.sink(), level=selected.level(), format=selected.format, **options)
    logger.configure(patcher=_inject_session)
    _CONFIGURED_PROFILE = profile
