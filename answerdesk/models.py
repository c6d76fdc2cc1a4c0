"""Data models for the answer pipeline."""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant"]
ParseKind = Literal["parsed", "fallback"]

DOWNLOAD_URL_PATTERN = "/documents/{resource_id}"


@dataclass
class ResourceRecord:
    """A catalog entry a chunk was extracted from."""

    id: str
    title: str
    description: str = ""
    file_type: str = ""
    file_size: int = 0
    category: str = ""
    created_at: str | None = None


@dataclass
class KnowledgeChunk:
    """A stored fragment of a resource, with its embedding when loaded."""

    content: str
    resource_id: str
    chunk_id: int = 0
    embedding: Any = None


@dataclass(frozen=True)
class RetrievedChunk:
    """A chunk returned by similarity search, ranked from 1."""

    rank: int
    content: str
    similarity: float
    resource_id: str
    chunk_id: int | None = None


@dataclass(frozen=True)
class Source:
    """Display projection of a catalog record cited by an answer."""

    id: str
    title: str
    description: str
    file_type: str
    file_size: int
    category: str
    created_at: str | None
    download_url: str

    @classmethod
    def from_record(cls, record: ResourceRecord) -> Source:
        return cls(
            id=record.id,
            title=record.title,
            description=record.description,
            file_type=record.file_type,
            file_size=record.file_size,
            category=record.category,
            created_at=record.created_at,
            download_url=DOWNLOAD_URL_PATTERN.format(resource_id=record.id),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            file_type=str(data.get("file_type") or ""),
            file_size=int(data.get("file_size") or 0),
            category=str(data.get("category") or ""),
            created_at=data.get("created_at"),
            download_url=str(
                data.get("download_url")
                or DOWNLOAD_URL_PATTERN.format(resource_id=data["id"])
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ParsedAnswer:
    """Structured payload extracted from raw model output."""

    answer: str
    resource_ids: list[str] = field(default_factory=list)
    kind: ParseKind = "parsed"

    @property
    def is_fallback(self) -> bool:
        return self.kind == "fallback"


@dataclass(frozen=True)
class ChatTurn:
    """A single turn in the conversation."""

    id: str
    role: Role
    content: str
    timestamp: datetime.datetime
    sources: tuple[Source, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.role == "assistant":
            data["sources"] = [source.to_dict() for source in self.sources]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatTurn:
        """Build a turn from its JSON form.

        Accepts the widget's legacy ``type: "bot"`` marker for assistant
        turns and turns without a timestamp.

        Raises:
            TypeError: If ``data`` is not a mapping.
            ValueError: If the role or content is missing or invalid.
        """
        if not isinstance(data, dict):
            msg = f"Chat turn must be an object, got {type(data).__name__}"
            raise TypeError(msg)

        role = data.get("role") or data.get("type")
        if role == "bot":
            role = "assistant"
        if role not in {"user", "assistant"}:
            msg = f"Invalid chat turn role: {role!r}"
            raise ValueError(msg)

        content = data.get("content")
        if not isinstance(content, str):
            msg = "Chat turn content must be a string"
            raise ValueError(msg)

        raw_timestamp = data.get("timestamp")
        if isinstance(raw_timestamp, str) and raw_timestamp:
            timestamp = datetime.datetime.fromisoformat(raw_timestamp)
        else:
            timestamp = datetime.datetime.now(tz=datetime.UTC)

        sources: tuple[Source, ...] = ()
        if role == "assistant":
            sources = tuple(
                Source.from_dict(item) for item in data.get("sources") or []
            )

        return cls(
            id=str(data.get("id") or ""),
            role=role,
            content=content,
            timestamp=timestamp,
            sources=sources,
        )


@dataclass(frozen=True)
class AnswerResult:
    """Final response of the answer pipeline."""

    answer: str
    resource_ids: list[str] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    need_query: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "need_query": self.need_query,
            "answer": self.answer,
            "resource_ids": list(self.resource_ids),
            "sources": [source.to_dict() for source in self.sources],
        }
