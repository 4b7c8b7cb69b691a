"""Data models used throughout kbn."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class KnowledgeType(str, Enum):
    PDF = "pdf"
    NOTE = "note"
    URL = "url"
    ARTICLE = "article"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class DetailLevel(str, Enum):
    """Verbosity instruction injected into the answer prompt."""

    BRIEF = "brief"
    NORMAL = "normal"
    DETAILED = "detailed"
    METICULOUS = "meticulous"

    @classmethod
    def parse(cls, value: "str | DetailLevel | None") -> "DetailLevel":
        """Unknown or missing levels fall back to NORMAL."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NORMAL


class CollectionStatus(str, Enum):
    CREATED = "created"
    EXISTS = "exists"


@dataclass
class KnowledgeItem:
    """A document (PDF, note, URL or article) owned by a notebook."""
    notebook_id: str
    type: KnowledgeType
    title: str = ""
    content: str = ""  # raw text, URL, or path to the stored file
    metadata: dict[str, Any] = field(default_factory=dict)
    embedded: bool = False
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "notebookId": self.notebook_id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "metadata": self.metadata,
            "createdAt": self.created_at,
            "embedded": self.embedded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeItem":
        return cls(
            id=data["id"],
            notebook_id=data["notebookId"],
            type=KnowledgeType(data["type"]),
            title=data.get("title", ""),
            content=data.get("content", ""),
            metadata=data.get("metadata") or {},
            embedded=bool(data.get("embedded", False)),
            created_at=data.get("createdAt", ""),
        )


@dataclass
class ChatMessage:
    role: Role
    content: str
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "role": self.role.value, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            content=data["content"],
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class Notebook:
    """Top-level grouping of knowledge items and their chat transcript."""
    name: str
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    knowledge_items: list[KnowledgeItem] = field(default_factory=list)
    chat_messages: list[ChatMessage] = field(default_factory=list)

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "knowledgeItems": [k.to_dict() for k in self.knowledge_items],
            "chatMessages": [m.to_dict() for m in self.chat_messages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notebook":
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            knowledge_items=[KnowledgeItem.from_dict(k) for k in data.get("knowledgeItems") or []],
            # older notebooks were written without a transcript
            chat_messages=[ChatMessage.from_dict(m) for m in data.get("chatMessages") or []],
        )


@dataclass
class ExtractedDocument:
    """Plain text and metadata returned by the document loader."""
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A chunk of text from a document."""
    content: str
    index: int
    metadata: dict[str, Any] = field(default_factory=dict)


def vector_id(notebook_id: str, knowledge_id: str, chunk_index: int) -> str:
    """Deterministic id of a chunk's vector; re-ingestion overwrites the same id."""
    return f"{notebook_id}_{knowledge_id}_{chunk_index}"


@dataclass
class IndexedVector:
    id: str
    embedding: list[float]
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievedDocument:
    """Read-path projection of an indexed vector."""
    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    distance: float | None = None
    rank: int | None = None


@dataclass
class IngestResult:
    knowledge_id: str
    chunk_count: int = 0
    embedded: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
