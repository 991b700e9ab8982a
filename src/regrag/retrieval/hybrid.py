"""
Hybrid retrieval: vector and keyword legs fanned out concurrently, merged by
document id and re-ranked.

A failing leg is logged as a PartialFailure. The strategy then serves the
vector leg on its own, tagged ``hybrid_fallback``; when the vector leg is the
one that failed the result is empty.
"""

import asyncio
import time

from ..chunking.text import term_coverage
from ..errors import PartialFailure
from ..models import RetrievalMetrics, RetrievalResult, SearchResult, clamp_score
from ..observability.logging import get_logger
from .base import DEFAULT_MAX_CONTEXT_TOKENS, RetrievalStrategy, assemble_context
from .keyword import KeywordSearchStrategy
from .vector import VectorSearchStrategy

logger = get_logger(__name__)

VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
AGREEMENT_BONUS = 0.1
FALLBACK_STRATEGY = "hybrid_fallback"


def merge_by_document(*legs: list[SearchResult]) -> list[SearchResult]:
    """Concatenate legs in order, keeping the first result per doc_id."""
    seen: set[str] = set()
    merged = []
    for leg in legs:
        for doc in leg:
            if doc.doc_id not in seen:
                seen.add(doc.doc_id)
                merged.append(doc)
    return merged


def combined_score(doc: SearchResult, query: str) -> float:
    score = doc.relevance
    if doc.source == "vector":
        score += 0.1
    elif doc.source == "keyword" and query.lower() in doc.content.lower():
        score += 0.2
    score += min(len(doc.content) / 1000, 0.3)
    score += term_coverage(query, [doc.content]) * 0.2
    return clamp_score(score)


class HybridSearchStrategy(RetrievalStrategy):
    name = "hybrid"
    description = "Combines vector and keyword search for comprehensive results"
    tools = ("hybrid_search", "vector_search", "keyword_search")

    def __init__(
        self,
        vector: VectorSearchStrategy,
        keyword: KeywordSearchStrategy,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
    ):
        super().__init__(max_context_tokens)
        self.vector = vector
        self.keyword = keyword

    async def run(self, query: str, limit: int = 5) -> RetrievalResult:
        start = time.perf_counter()
        vector_result, keyword_result = await asyncio.gather(
            self.vector.run(query, limit),
            self.keyword.run(query, limit),
            return_exceptions=True,
        )

        if isinstance(vector_result, BaseException):
            failure = PartialFailure("vector", vector_result)
            logger.error(f"Hybrid search degraded: {failure}")
            return RetrievalResult.empty(
                self.name, list(self.tools), query_time_ms=(time.perf_counter() - start) * 1000
            )
        if isinstance(keyword_result, BaseException):
            failure = PartialFailure("keyword", keyword_result)
            logger.warning(f"Hybrid search falling back to vector: {failure}")
            return self._fallback(vector_result, start)

        try:
            documents = merge_by_document(vector_result.documents, keyword_result.documents)
            for doc in documents:
                doc.relevance = combined_score(doc, query)
            documents.sort(key=lambda d: d.relevance, reverse=True)
            documents = documents[:limit]
        except Exception as e:
            logger.warning(f"Hybrid re-ranking failed, falling back to vector: {e}")
            return self._fallback(vector_result, start)

        accuracy = (
            vector_result.metrics.retrieval_accuracy * VECTOR_WEIGHT
            + keyword_result.metrics.retrieval_accuracy * KEYWORD_WEIGHT
        )
        if vector_result.documents and keyword_result.documents:
            accuracy += AGREEMENT_BONUS

        return RetrievalResult(
            documents=documents,
            metrics=RetrievalMetrics(
                query_time_ms=(time.perf_counter() - start) * 1000,
                tools_called=list(self.tools),
                token_count=vector_result.metrics.token_count,
                documents_retrieved=[d.doc_id for d in documents],
                search_strategy=self.name,
                retrieval_accuracy=clamp_score(accuracy),
            ),
            context=assemble_context(documents, self.max_context_tokens),
        )

    def _fallback(self, vector_result: RetrievalResult, start: float) -> RetrievalResult:
        metrics = vector_result.metrics
        return RetrievalResult(
            documents=vector_result.documents,
            metrics=RetrievalMetrics(
                query_time_ms=(time.perf_counter() - start) * 1000,
                tools_called=["hybrid_search", "vector_search"],
                token_count=metrics.token_count,
                documents_retrieved=list(metrics.documents_retrieved),
                search_strategy=FALLBACK_STRATEGY,
                retrieval_accuracy=metrics.retrieval_accuracy,
            ),
            context=vector_result.context,
        )
