"""Semantic search over chunk embeddings."""

import time
from typing import TYPE_CHECKING

from ..models import RetrievalResult, SearchResult, clamp_score
from ..storage.base import DocumentStore, EmbeddingOracle
from .base import (
    DEFAULT_MAX_CONTEXT_TOKENS,
    RetrievalStrategy,
    coverage_accuracy,
    length_bonus,
    term_presence_bonus,
)

if TYPE_CHECKING:
    from ..core.cache import CacheManager


class VectorSearchStrategy(RetrievalStrategy):
    name = "vector"
    description = "Semantic search using vector embeddings for similarity matching"
    tools = ("vector_search",)

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingOracle,
        similarity_threshold: float = 0.3,
        min_content_length: int = 50,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        cache_manager: "CacheManager | None" = None,
    ):
        super().__init__(max_context_tokens)
        self.store = store
        self.embedder = embedder
        self.cache_manager = cache_manager
        self.similarity_threshold = similarity_threshold
        self.min_content_length = min_content_length

    async def candidates(self, query: str, count: int) -> list[SearchResult]:
        """Raw store hits for ``query``; embedding and store errors propagate."""
        embedding = await self.embed_query(query)
        return await self.store.vector_search(
            embedding, count, self.similarity_threshold, self.min_content_length
        )

    async def embed_query(self, query: str) -> list[float]:
        """Embed ``query``, reusing the embedding cache when one is attached."""
        if self.cache_manager is not None:
            cached = await self.cache_manager.get_cached_embedding(query)
            if cached is not None:
                return cached
        embedding = await self.embedder.embed(query)
        if self.cache_manager is not None:
            await self.cache_manager.set_cached_embedding(query, embedding)
        return embedding

    async def run(self, query: str, limit: int = 5) -> RetrievalResult:
        start = time.perf_counter()
        documents = await self.candidates(query, limit)
        for doc in documents:
            doc.relevance = self.calculate_relevance(doc, query)
        return self._result(documents, query, coverage_accuracy(documents, query), start)

    @staticmethod
    def calculate_relevance(doc: SearchResult, query: str) -> float:
        return clamp_score(
            doc.similarity + term_presence_bonus(query, doc.content) + length_bonus(doc.content)
        )
