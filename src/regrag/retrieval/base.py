"""
Shared machinery for retrieval strategies: scoring helpers, context assembly
and the empty-on-error boundary.
"""

import math
import time
from abc import ABC, abstractmethod

from ..chunking.text import query_terms, term_coverage
from ..models import RetrievalMetrics, RetrievalResult, SearchResult, clamp_score
from ..observability.logging import get_logger
from ..observability.probe import probe

logger = get_logger(__name__)

DEFAULT_MAX_CONTEXT_TOKENS = 4000
CONTEXT_TEMPLATE = "Document ID: {doc_id}\nContent: {content}\nRelevance: {relevance:.3f}\nSource: {source}\n\n"


def query_token_count(query: str) -> int:
    return math.ceil(len(query) / 4)


def term_presence_bonus(query: str, content: str, per_term: float = 0.1) -> float:
    lowered = content.lower()
    return sum(per_term for term in query_terms(query) if term in lowered)


def length_bonus(content: str, cap: float = 0.2) -> float:
    return min(len(content) / 1000, cap)


def coverage_accuracy(documents: list[SearchResult], query: str) -> float:
    """(mean similarity + query-term coverage) / 2; 0 for no documents."""
    if not documents:
        return 0.0
    avg_similarity = sum(d.similarity for d in documents) / len(documents)
    return (avg_similarity + term_coverage(query, [d.content for d in documents])) / 2


def assemble_context(documents: list[SearchResult], max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS) -> str:
    """
    Concatenate documents best-first until the next one would exceed
    ``max_tokens`` (len / 4). Documents are never truncated.
    """
    parts: list[str] = []
    used = 0.0
    for doc in sorted(documents, key=lambda d: d.relevance, reverse=True):
        text = CONTEXT_TEMPLATE.format(
            doc_id=doc.doc_id, content=doc.content, relevance=doc.relevance, source=doc.source
        )
        tokens = len(text) / 4
        if used + tokens > max_tokens:
            break
        parts.append(text)
        used += tokens
    return "".join(parts)


class RetrievalStrategy(ABC):
    """
    A retrieval algorithm.

    ``run`` performs the search and may raise; ``search`` is the public
    boundary that turns any failure into an empty result tagged with the
    strategy name.
    """

    name: str = "base"
    description: str = ""
    tools: tuple[str, ...] = ()

    def __init__(self, max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS):
        self.max_context_tokens = max_context_tokens

    @abstractmethod
    async def run(self, query: str, limit: int = 5) -> RetrievalResult:
        ...

    async def search(self, query: str, limit: int = 5) -> RetrievalResult:
        start = time.perf_counter()
        try:
            with probe(f"retrieval.{self.name}", limit=limit):
                return await self.run(query, limit)
        except Exception as e:
            logger.error(f"{self.name} search failed: {e}", error_type=type(e).__name__)
            return RetrievalResult.empty(
                self.name, list(self.tools), query_time_ms=(time.perf_counter() - start) * 1000
            )

    def get_description(self) -> str:
        return self.description

    def _result(
        self, documents: list[SearchResult], query: str, accuracy: float, start: float
    ) -> RetrievalResult:
        documents = sorted(documents, key=lambda d: d.relevance, reverse=True)
        return RetrievalResult(
            documents=documents,
            metrics=RetrievalMetrics(
                query_time_ms=(time.perf_counter() - start) * 1000,
                tools_called=list(self.tools),
                token_count=query_token_count(query),
                documents_retrieved=[d.doc_id for d in documents],
                search_strategy=self.name,
                retrieval_accuracy=clamp_score(accuracy),
            ),
            context=assemble_context(documents, self.max_context_tokens),
        )
