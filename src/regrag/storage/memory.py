"""
In-process implementations of the store and embedding interfaces.

Used for development, tests and single-node deployments. Similarity is plain
numpy cosine, clamped to [0, 1].
"""

import hashlib
import re
import threading
from typing import Any

import numpy as np

from ..errors import EmbeddingError
from ..models import Chunk, DocumentInfo, KnowledgeGraphRelationship, SearchResult
from ..observability.logging import get_logger
from .base import DocumentStore, EmbeddingOracle

logger = get_logger(__name__)

_TOKEN = re.compile(r"\w+")


class HashingEmbedder(EmbeddingOracle):
    """Deterministic bag-of-words embedding using the hashing trick."""

    def __init__(self, dimensions: int = 384):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        if not isinstance(text, str):
            raise EmbeddingError(f"cannot embed {type(text).__name__}")

        vector = np.zeros(self.dimensions, dtype=np.float32)
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "little") % self.dimensions] += 1.0

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0.0:
        return 0.0
    return max(0.0, min(1.0, float(np.dot(a, b)) / denominator))


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Each table has its own lock."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._chunks: dict[str, tuple[str, Chunk, np.ndarray | None]] = {}
        self._keywords: dict[str, dict[str, Any]] = {}
        self._relationships: dict[tuple[str, str], KnowledgeGraphRelationship] = {}
        self._concepts: dict[str, list[str]] = {}

        self._documents_lock = threading.Lock()
        self._chunks_lock = threading.Lock()
        self._graph_lock = threading.Lock()

    async def vector_search(
        self,
        embedding: list[float],
        match_count: int,
        match_threshold: float = 0.3,
        min_content_length: int = 0,
    ) -> list[SearchResult]:
        query = np.asarray(embedding, dtype=np.float32)
        with self._chunks_lock:
            rows = list(self._chunks.values())

        results = []
        for doc_id, chunk, vector in rows:
            if vector is None or len(chunk.content) < min_content_length:
                continue
            similarity = cosine_similarity(query, vector)
            if similarity < match_threshold:
                continue
            results.append(
                SearchResult(
                    doc_id=doc_id,
                    chunk_id=chunk.id,
                    content=chunk.content,
                    similarity=similarity,
                    source="vector",
                    metadata=dict(chunk.metadata),
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:match_count]

    async def full_text_search(self, query: str, limit: int) -> list[SearchResult]:
        terms = [t for t in query.lower().split() if t]
        if not terms:
            return []
        with self._chunks_lock:
            rows = list(self._chunks.values())

        scored = []
        for doc_id, chunk, _ in rows:
            lowered = chunk.content.lower()
            hits = sum(1 for t in terms if t in lowered)
            if hits:
                scored.append((hits, doc_id, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            SearchResult(
                doc_id=doc_id,
                chunk_id=chunk.id,
                content=chunk.content,
                similarity=0.0,
                source="keyword",
                metadata=dict(chunk.metadata),
            )
            for _, doc_id, chunk in scored[:limit]
        ]

    async def upsert_document(
        self,
        document: DocumentInfo,
        embedding: list[float] | None = None,
        keywords: list[str] | None = None,
        topics: list[str] | None = None,
        summary: str = "",
    ) -> None:
        with self._documents_lock:
            self._documents[document.doc_id] = {
                "document": document,
                "embedding": embedding,
                "keywords": list(keywords or []),
                "topics": list(topics or []),
                "summary": summary,
            }

    async def upsert_chunk(self, doc_id: str, chunk: Chunk, embedding: list[float] | None) -> None:
        vector = np.asarray(embedding, dtype=np.float32) if embedding is not None else None
        with self._chunks_lock:
            self._chunks[chunk.id] = (doc_id, chunk, vector)

    async def upsert_keyword(
        self, keyword: str, weight: float, frequency: int, concept: str | None = None
    ) -> None:
        with self._graph_lock:
            self._keywords[keyword] = {"weight": weight, "frequency": frequency, "concept": concept}

    async def upsert_relationship(self, relationship: KnowledgeGraphRelationship) -> None:
        with self._graph_lock:
            self._relationships[(relationship.source_id, relationship.target_id)] = relationship

    async def upsert_concept(self, concept: str, keywords: list[str]) -> None:
        with self._graph_lock:
            existing = self._concepts.setdefault(concept, [])
            existing.extend(k for k in keywords if k not in existing)

    async def get_related_chunks(
        self, chunk_id: str, min_weight: float = 0.3, limit: int = 3
    ) -> list[dict[str, Any]]:
        weights: dict[str, float] = {}
        with self._graph_lock:
            for (source, target), rel in self._relationships.items():
                if chunk_id in (source, target):
                    other = target if source == chunk_id else source
                    weights[other] = max(rel.weight, weights.get(other, 0.0))
        with self._chunks_lock:
            row = self._chunks.get(chunk_id)
        if row is not None:
            for other, weight in row[1].relationship_weights.items():
                weights[other] = max(weight, weights.get(other, 0.0))

        related = [
            {"chunk_id": other, "weight": weight}
            for other, weight in weights.items()
            if weight >= min_weight
        ]
        related.sort(key=lambda r: r["weight"], reverse=True)
        return related[:limit]

    async def get_keywords_for_chunk(self, chunk_id: str) -> list[str]:
        with self._chunks_lock:
            row = self._chunks.get(chunk_id)
        return list(row[1].keywords) if row else []

    async def find_chunks_by_keywords(self, keywords: list[str], limit: int) -> list[Chunk]:
        wanted = set(keywords)
        with self._chunks_lock:
            rows = list(self._chunks.values())
        scored = [
            (len(wanted.intersection(chunk.keywords)), chunk)
            for _, chunk, _ in rows
            if wanted.intersection(chunk.keywords)
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [chunk for _, chunk in scored[:limit]]

    async def get_relationships(
        self, chunk_ids: list[str], min_weight: float = 0.0
    ) -> list[KnowledgeGraphRelationship]:
        ids = set(chunk_ids)
        with self._graph_lock:
            return [
                rel
                for (source, target), rel in self._relationships.items()
                if source in ids and target in ids and rel.weight >= min_weight
            ]

    async def document_exists(self, doc_id: str) -> bool:
        with self._documents_lock:
            return doc_id in self._documents

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        with self._chunks_lock:
            row = self._chunks.get(chunk_id)
        return row[1] if row else None

    async def get_stats(self) -> dict[str, Any]:
        with self._documents_lock, self._chunks_lock, self._graph_lock:
            return {
                "backend": "memory",
                "documents": len(self._documents),
                "chunks": len(self._chunks),
                "keywords": len(self._keywords),
                "relationships": len(self._relationships),
                "concepts": len(self._concepts),
            }
