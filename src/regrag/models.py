"""
Core data model shared by chunking, graph building, retrieval and orchestration.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


def clamp_score(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class DocumentInfo:
    """A source document with per-page parallel sequences."""

    doc_id: str
    title: str = ""
    doc_type_code: str = ""
    doc_type_desc: str = ""
    version: str = ""
    issue_date: str = ""
    headers: tuple[str, ...] = ()
    footers: tuple[str, ...] = ()
    body_content: tuple[str, ...] = ()
    page_numbers: tuple[int, ...] = ()

    @property
    def full_text(self) -> str:
        return "\n\n".join(self.body_content)

    @property
    def page_count(self) -> int:
        return len(self.body_content)

    def to_metadata(self) -> dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "title": self.title,
            "doc_type_code": self.doc_type_code,
            "doc_type_desc": self.doc_type_desc,
            "version": self.version,
            "issue_date": self.issue_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentInfo":
        """Build a DocumentInfo from a JSON-style mapping."""
        return cls(
            doc_id=str(data["doc_id"]),
            title=data.get("title", ""),
            doc_type_code=data.get("doc_type_code", ""),
            doc_type_desc=data.get("doc_type_desc", ""),
            version=data.get("version", ""),
            issue_date=data.get("issue_date", ""),
            headers=tuple(data.get("headers", ())),
            footers=tuple(data.get("footers", ())),
            body_content=tuple(data.get("body_content", ())),
            page_numbers=tuple(int(p) for p in data.get("page_numbers", ())),
        )


class ChunkType(Enum):
    """Kinds of retrievable units."""

    HEADER = "header"
    FOOTER = "footer"
    BODY = "body"
    MIXED = "mixed"
    QUESTION = "question"
    ANSWER = "answer"
    TOPIC = "topic"
    SUBSECTION = "subsection"
    CONTEXTUAL = "contextual"
    IMAGE = "image"


@dataclass
class Chunk:
    """A retrievable unit of text. Enriched in place by pipeline stages."""

    id: str
    content: str
    chunk_type: ChunkType = ChunkType.BODY
    keywords: list[str] = field(default_factory=list)
    related_chunks: list[str] = field(default_factory=list)
    relationship_weights: dict[str, float] = field(default_factory=dict)
    context_extension: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def link(self, other_id: str, weight: float) -> None:
        """Add (or re-weight) a relationship to another chunk."""
        if other_id == self.id:
            return
        if other_id not in self.related_chunks:
            self.related_chunks.append(other_id)
        self.relationship_weights[other_id] = clamp_score(weight)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["chunk_type"] = self.chunk_type.value
        return data


class NodeType(Enum):
    CHUNK = "chunk"
    KEYWORD = "keyword"
    CONCEPT = "concept"


@dataclass
class KnowledgeGraphNode:
    id: str
    node_type: NodeType
    content: str
    keywords: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class KnowledgeGraphRelationship:
    source_id: str
    target_id: str
    relationship_type: str
    weight: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.weight = clamp_score(self.weight)


@dataclass
class SearchResult:
    """One retrieved item with its raw similarity and boosted relevance."""

    doc_id: str
    content: str
    similarity: float
    source: str
    relevance: float = 0.0
    chunk_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.similarity = clamp_score(self.similarity)
        self.relevance = clamp_score(self.relevance)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResult":
        return cls(
            doc_id=data["doc_id"],
            content=data.get("content", ""),
            similarity=data.get("similarity", 0.0),
            source=data.get("source", "vector"),
            relevance=data.get("relevance", 0.0),
            chunk_id=data.get("chunk_id"),
            metadata=data.get("metadata", {}) or {},
        )


@dataclass
class RetrievalMetrics:
    query_time_ms: float
    tools_called: list[str]
    token_count: int
    documents_retrieved: list[str]
    search_strategy: str
    retrieval_accuracy: float

    def __post_init__(self) -> None:
        self.retrieval_accuracy = clamp_score(self.retrieval_accuracy)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RetrievalMetrics":
        return cls(
            query_time_ms=data.get("query_time_ms", 0.0),
            tools_called=list(data.get("tools_called", [])),
            token_count=data.get("token_count", 0),
            documents_retrieved=list(data.get("documents_retrieved", [])),
            search_strategy=data.get("search_strategy", "vector"),
            retrieval_accuracy=data.get("retrieval_accuracy", 0.0),
        )


@dataclass
class RetrievalResult:
    documents: list[SearchResult]
    metrics: RetrievalMetrics
    context: str = ""

    @classmethod
    def empty(cls, strategy: str, tools: list[str], query_time_ms: float = 0.0) -> "RetrievalResult":
        """Result returned when a strategy degrades after a collaborator failure."""
        return cls(
            documents=[],
            metrics=RetrievalMetrics(
                query_time_ms=query_time_ms,
                tools_called=list(tools),
                token_count=0,
                documents_retrieved=[],
                search_strategy=strategy,
                retrieval_accuracy=0.0,
            ),
            context="",
        )
