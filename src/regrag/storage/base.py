"""
Interfaces for the external collaborators the RAG core depends on.

Implementations raise the ExternalServiceError subclasses from
``regrag.errors`` on failure; the retrieval strategies turn those into empty
results.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models import Chunk, DocumentInfo, KnowledgeGraphRelationship, SearchResult


class EmbeddingOracle(ABC):
    """Maps text to a fixed-length embedding vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...

    async def close(self) -> None:
        """Release any held resources."""


class TextGenerator(ABC):
    """LLM completion endpoint."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...

    async def close(self) -> None:
        """Release any held resources."""


class DocumentStore(ABC):
    """Persistent document, chunk, vector and keyword-graph store."""

    # Search

    @abstractmethod
    async def vector_search(
        self,
        embedding: list[float],
        match_count: int,
        match_threshold: float = 0.3,
        min_content_length: int = 0,
    ) -> list[SearchResult]:
        """Nearest chunks by cosine similarity, best first."""
        ...

    @abstractmethod
    async def full_text_search(self, query: str, limit: int) -> list[SearchResult]:
        """Chunks containing any query term."""
        ...

    # Writes

    @abstractmethod
    async def upsert_document(
        self,
        document: DocumentInfo,
        embedding: list[float] | None = None,
        keywords: list[str] | None = None,
        topics: list[str] | None = None,
        summary: str = "",
    ) -> None:
        ...

    @abstractmethod
    async def upsert_chunk(self, doc_id: str, chunk: Chunk, embedding: list[float] | None) -> None:
        ...

    @abstractmethod
    async def upsert_keyword(
        self, keyword: str, weight: float, frequency: int, concept: str | None = None
    ) -> None:
        ...

    @abstractmethod
    async def upsert_relationship(self, relationship: KnowledgeGraphRelationship) -> None:
        ...

    @abstractmethod
    async def upsert_concept(self, concept: str, keywords: list[str]) -> None:
        ...

    # Graph reads

    @abstractmethod
    async def get_related_chunks(
        self, chunk_id: str, min_weight: float = 0.3, limit: int = 3
    ) -> list[dict[str, Any]]:
        """Neighbours of a chunk as ``{"chunk_id", "weight"}`` dicts, heaviest first."""
        ...

    @abstractmethod
    async def get_keywords_for_chunk(self, chunk_id: str) -> list[str]:
        ...

    @abstractmethod
    async def find_chunks_by_keywords(self, keywords: list[str], limit: int) -> list[Chunk]:
        ...

    @abstractmethod
    async def get_relationships(
        self, chunk_ids: list[str], min_weight: float = 0.0
    ) -> list[KnowledgeGraphRelationship]:
        """Edges whose both endpoints are in ``chunk_ids``."""
        ...

    # Lookups

    @abstractmethod
    async def document_exists(self, doc_id: str) -> bool:
        ...

    @abstractmethod
    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        ...

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        """Release any held resources."""
