"""Chat session state with a durable, capped history cache.

The session is an immutable value; every change goes through :func:`reduce`
and the store persists the result afterwards, so persistence always sees the
latest accepted turn list.
"""

from __future__ import annotations

import datetime
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .errors import AnswerDeskError
from .models import ChatTurn

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .models import AnswerResult, Source

logger = config.get_logger(__name__)

SEED_TURN_ID = "1"
WELCOME_TEXT = (
    "Xin chào! Tôi là ITUP - trợ lý ảo của Câu lạc bộ IT UP!\n\n"
    "Tôi có thể giúp bạn tìm hiểu về:\n"
    "1. Tài liệu và quy chế câu lạc bộ\n"
    "2. Các sự kiện và hoạt động sắp tới\n"
    "3. Thông tin thành viên và ban chủ nhiệm\n"
    "4. Hướng dẫn tham gia câu lạc bộ\n\n"
    "Bạn muốn tìm hiểu gì về ITUP?"
)
EMPTY_ANSWER_TEXT = "Xin lỗi, tôi không thể trả lời câu hỏi này."
ANSWER_ERROR_TEXT = "Xin lỗi, đã có lỗi xảy ra. Vui lòng thử lại sau."


def _now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


def welcome_turn() -> ChatTurn:
    return ChatTurn(
        id=SEED_TURN_ID, role="assistant", content=WELCOME_TEXT, timestamp=_now()
    )


@dataclass(frozen=True)
class ChatSession:
    """Ordered turns of one conversation, oldest first."""

    turns: tuple[ChatTurn, ...]

    @classmethod
    def seeded(cls) -> ChatSession:
        return cls(turns=(welcome_turn(),))

    @property
    def is_seed_only(self) -> bool:
        return len(self.turns) <= 1

    def last(self, count: int) -> list[ChatTurn]:
        if count <= 0:
            return []
        return list(self.turns[-count:])


@dataclass(frozen=True)
class AppendTurn:
    turn: ChatTurn


@dataclass(frozen=True)
class LoadTurns:
    turns: tuple[ChatTurn, ...]


@dataclass(frozen=True)
class ResetSession:
    pass


SessionEvent = AppendTurn | LoadTurns | ResetSession


def reduce(session: ChatSession, event: SessionEvent) -> ChatSession:
    """Apply one event to a session.

    Returns:
        The new session; the input is never modified.

    Raises:
        TypeError: For an unknown event type.
    """
    if isinstance(event, AppendTurn):
        return ChatSession(turns=(*session.turns, event.turn))
    if isinstance(event, LoadTurns):
        # An empty cache leaves the session as it was
        return ChatSession(turns=event.turns) if event.turns else session
    if isinstance(event, ResetSession):
        return ChatSession.seeded()
    msg = f"Unknown session event: {type(event).__name__}"
    raise TypeError(msg)


class HistoryCache:
    """JSON file holding the persisted turn list of one browser session."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path is not None else config.CHAT_HISTORY_PATH

    def read(self) -> list[ChatTurn] | None:
        """Read the cached turns.

        Returns:
            The turns, or None when the entry is missing or unreadable.
        """
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                msg = "Chat history cache must hold a list"
                raise TypeError(msg)
            return [ChatTurn.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Error loading chat history from %s", self.path)
            return None

    def write(self, turns: Sequence[ChatTurn]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [turn.to_dict() for turn in turns]
        self.path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class ChatSessionStore:
    """Owns the session of one user and keeps its cache in sync."""

    def __init__(
        self,
        cache: HistoryCache | None = None,
        max_turns: int | None = None,
        history_window: int | None = None,
    ) -> None:
        self.cache = cache or HistoryCache()
        self.max_turns = (
            max_turns if max_turns is not None else config.SESSION_MAX_TURNS
        )
        self.window = (
            history_window if history_window is not None else config.HISTORY_WINDOW
        )
        self.session = ChatSession.seeded()
        self._last_id = 0

    @property
    def turns(self) -> list[ChatTurn]:
        return list(self.session.turns)

    def _next_id(self) -> str:
        self._last_id = max(time.time_ns() // 1_000_000, self._last_id + 1)
        return str(self._last_id)

    def dispatch(self, event: SessionEvent) -> ChatSession:
        """Apply an event, then run its persistence side effect.

        Returns:
            The session after the event.
        """
        self.session = reduce(self.session, event)

        if isinstance(event, ResetSession):
            self.cache.clear()
        elif isinstance(event, AppendTurn) and not self.session.is_seed_only:
            self.persist()

        return self.session

    def persist(self) -> None:
        """Write the last ``max_turns`` turns to the cache, replacing it."""
        self.cache.write(self.session.last(self.max_turns))

    def load(self) -> ChatSession:
        """Replace the seeded session with the cached turns, if any.

        Returns:
            The session after loading.
        """
        cached = self.cache.read()
        if cached:
            logger.info("Loaded %d chat turns from cache", len(cached))
            self.dispatch(LoadTurns(turns=tuple(cached)))
        return self.session

    def reset(self) -> ChatSession:
        logger.info("Chat history cleared.")
        return self.dispatch(ResetSession())

    def append_user(self, content: str) -> ChatTurn:
        turn = ChatTurn(
            id=self._next_id(), role="user", content=content.strip(), timestamp=_now()
        )
        self.dispatch(AppendTurn(turn))
        return turn

    def append_assistant(
        self, content: str, sources: Sequence[Source] = ()
    ) -> ChatTurn:
        turn = ChatTurn(
            id=self._next_id(),
            role="assistant",
            content=content or EMPTY_ANSWER_TEXT,
            timestamp=_now(),
            sources=tuple(sources),
        )
        self.dispatch(AppendTurn(turn))
        return turn

    def history_window(self, count: int | None = None) -> list[ChatTurn]:
        """Most recent turns to send along with a question.

        Returns:
            At most ``count`` (default: the configured window) turns.
        """
        return self.session.last(self.window if count is None else count)

    def ask(
        self,
        question: str,
        answer_fn: Callable[[str, list[ChatTurn]], AnswerResult],
    ) -> ChatTurn:
        """Record a question, get it answered and record the reply.

        History is taken before the question is appended, so the question
        itself is not part of it.

        Returns:
            The assistant turn that was appended.

        Raises:
            ValueError: If the question is blank.
        """
        if not question or not question.strip():
            msg = "Question must not be empty"
            raise ValueError(msg)

        history = self.history_window()
        self.append_user(question)

        try:
            result = answer_fn(question.strip(), history)
        except AnswerDeskError:
            logger.exception("Answer request failed")
            return self.append_assistant(ANSWER_ERROR_TEXT)

        return self.append_assistant(result.answer, result.sources)
