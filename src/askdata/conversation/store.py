"""In-memory conversation store."""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections import OrderedDict
from collections.abc import AsyncGenerator, Callable, Iterable
from contextvars import ContextVar
from dataclasses import dataclass, field

from loguru import logger

from askdata.conversation.models import Turn, UserTurn
from askdata.errors import SessionNotFoundError

_session_context: ContextVar[str] = ContextVar("session")


def current_session() -> str:
    """Get the id of the session being served in this context."""
    return _session_context.get("-")


@dataclass
class _Session:
    session_id: str
    turns: list[Turn] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    touched_at: float = 0.0


class ConversationStore:
    """Process-scoped registry of session histories.

    Created once at startup and passed to whoever needs history. Nothing is
    persisted. Idle sessions expire after ``session_ttl_seconds`` and the least
    recently used idle session is evicted once ``max_sessions`` is reached.
    Histories longer than ``max_turns`` lose their oldest exchanges, always cut
    at a user turn so tool invocations keep their results.
    """

    def __init__(
        self,
        *,
        max_sessions: int = 1000,
        session_ttl_seconds: float | None = 3600,
        max_turns: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: OrderedDict[str, _Session] = OrderedDict()
        self._max_sessions = max_sessions
        self._session_ttl_seconds = session_ttl_seconds
        self._max_turns = max_turns
        self._clock = clock

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> str:
        self._expire_idle()
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        self._sessions[session_id] = _Session(session_id=session_id, touched_at=self._clock())
        self._evict_overflow()
        logger.info("conversation.session.start session_id={} sessions={}", session_id, len(self._sessions))
        return session_id

    def read(self, session_id: str) -> tuple[Turn, ...]:
        return tuple(self._get(session_id).turns)

    def append(self, session_id: str, turn: Turn) -> None:
        self.commit(session_id, (turn,))

    def commit(self, session_id: str, turns: Iterable[Turn]) -> None:
        """Append several turns at once; no other writer can interleave."""
        session = self._get(session_id)
        session.turns.extend(turns)
        self._trim(session)

    @contextlib.asynccontextmanager
    async def lease(self, session_id: str) -> AsyncGenerator[None, None]:
        """Hold the single-writer lease for ``session_id``."""
        session = self._get(session_id)
        async with session.lock:
            # A streamed turn may be resumed from another task's context, so no reset token is held.
            previous = _session_context.get("-")
            _session_context.set(session_id)
            try:
                yield
            finally:
                session.touched_at = self._clock()
                _session_context.set(previous)

    def _get(self, session_id: str) -> _Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.touched_at = self._clock()
        self._sessions.move_to_end(session_id)
        return session

    def _trim(self, session: _Session) -> None:
        overflow = len(session.turns) - self._max_turns
        if overflow <= 0:
            return
        cut = overflow
        while cut < len(session.turns) and not isinstance(session.turns[cut], UserTurn):
            cut += 1
        if cut >= len(session.turns):
            # The live exchange alone exceeds the bound; keep it whole.
            return
        del session.turns[:cut]
        logger.debug("conversation.trim session_id={} dropped={}", session.session_id, cut)

    def _expire_idle(self) -> None:
        if self._session_ttl_seconds is None:
            return
        deadline = self._clock() - self._session_ttl_seconds
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.touched_at < deadline and not session.lock.locked()
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("conversation.session.expire count={}", len(expired))

    def _evict_overflow(self) -> None:
        while len(self._sessions) > self._max_sessions:
            victim = next(
                (sid for sid, session in self._sessions.items() if not session.lock.locked()),
                None,
            )
            if victim is None:
                return
            del self._sessions[victim]
            logger.info("conversation.session.evict session_id={}", victim)
