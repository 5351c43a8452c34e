"""Parse the trailing suggestions block out of an assistant response."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from askdata.policy import SUGGESTIONS_DELIMITER

MIN_SUGGESTIONS = 3
MAX_SUGGESTIONS = 4


@dataclass(frozen=True)
class ParsedResponse:
    """Response prose, follow-up suggestions and any format violation found."""

    text: str
    suggestions: list[str] = field(default_factory=list)
    violation: str | None = None

    @property
    def ok(self) -> bool:
        return self.violation is None


class SuggestionsParser:
    """Accumulate streamed fragments; split and decode once the stream ends.

    ``feed`` never parses JSON. It only reports how much new prose is safe to
    show, holding back anything that could be the start of the delimiter.
    Each call scans only the new fragment plus the held-back tail.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._length = 0
        self._tail = ""
        self._shown = 0
        self._cut: int | None = None

    def feed(self, fragment: str) -> str:
        """Add ``fragment`` and return the newly displayable prose."""
        window_start = self._length - len(self._tail)
        window = self._tail + fragment
        self._parts.append(fragment)
        self._length += len(fragment)
        self._tail = window[-(len(SUGGESTIONS_DELIMITER) - 1) :]

        if self._cut is None:
            found = window.find(SUGGESTIONS_DELIMITER)
            if found >= 0:
                self._cut = window_start + found
        cut = self._cut if self._cut is not None else self._length - _partial_delimiter_length(window)
        if cut <= self._shown:
            return ""
        visible = window[self._shown - window_start : cut - window_start]
        self._shown = cut
        return visible

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def flush(self) -> str:
        """Release prose held back as a possible delimiter once the stream has ended."""
        if self._cut is not None:
            return ""
        visible = self.text[self._shown :]
        self._shown = self._length
        return visible

    def finish(self) -> ParsedResponse:
        return parse_response(self.text)


def _partial_delimiter_length(text: str) -> int:
    for size in range(min(len(text), len(SUGGESTIONS_DELIMITER) - 1), 0, -1):
        if SUGGESTIONS_DELIMITER.startswith(text[-size:]):
            return size
    return 0


def parse_response(raw: str) -> ParsedResponse:
    head, sep, rest = raw.partition(SUGGESTIONS_DELIMITER)
    if not sep:
        return ParsedResponse(text=raw.rstrip(), violation="missing suggestions block")

    body, closing, trailer = rest.partition(SUGGESTIONS_DELIMITER)
    text = head.rstrip()
    if not closing:
        return ParsedResponse(text=text, violation="unterminated suggestions block")
    if trailer:
        return ParsedResponse(text=text, violation="text after suggestions block")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return ParsedResponse(text=text, violation="suggestions block is not valid JSON")

    suggestions = payload.get("suggestions") if isinstance(payload, dict) else None
    if not isinstance(suggestions, list) or not all(isinstance(item, str) for item in suggestions):
        return ParsedResponse(text=text, violation="suggestions must be a list of strings")
    if not MIN_SUGGESTIONS <= len(suggestions) <= MAX_SUGGESTIONS:
        return ParsedResponse(
            text=text,
            suggestions=suggestions,
            violation=f"expected {MIN_SUGGESTIONS}-{MAX_SUGGESTIONS} suggestions, got {len(suggestions)}",
        )
    return ParsedResponse(text=text, suggestions=suggestions)
