"""
Vector search re-ranked with knowledge-graph signals.

Each vector candidate is scored again using its keyword overlap with the
query, the mean weight of its related chunks, and the concepts its keywords
map to. Candidates are looked up concurrently.
"""

import asyncio
import re
import time

from ..chunking.text import jaccard, term_coverage
from ..graph.builder import concept_for_keyword
from ..models import RetrievalResult, SearchResult, clamp_score
from ..storage.base import DocumentStore
from .base import DEFAULT_MAX_CONTEXT_TOKENS, RetrievalStrategy, length_bonus, term_presence_bonus
from .vector import VectorSearchStrategy

RELATED_MIN_WEIGHT = 0.3
RELATED_LIMIT = 3
GRAPH_SOURCE = "knowledge_graph"


def query_keywords(query: str) -> set[str]:
    return {w for w in re.sub(r"[^\w\s]", "", query.lower()).split() if len(w) > 3}


def concept_relevance(keywords: list[str], query: str) -> float:
    lowered = query.lower()
    score = 0.0
    for keyword in keywords:
        concept = concept_for_keyword(keyword)
        if concept and concept in lowered:
            score += 0.3
    return min(score, 1.0)


class KnowledgeGraphSearchStrategy(RetrievalStrategy):
    name = "knowledge_graph"
    description = "Semantic search enhanced with knowledge graph relationships and concept mapping"
    tools = ("knowledge_graph_search",)

    def __init__(
        self,
        store: DocumentStore,
        vector: VectorSearchStrategy,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
    ):
        super().__init__(max_context_tokens)
        self.store = store
        self.vector = vector

    async def run(self, query: str, limit: int = 5) -> RetrievalResult:
        start = time.perf_counter()
        candidates = await self.vector.candidates(query, limit * 2)

        keywords = query_keywords(query)
        enhanced = await asyncio.gather(*(self._enhance(doc, query, keywords) for doc in candidates))

        documents = [doc for _, doc in sorted(zip(enhanced, candidates), key=lambda p: p[0], reverse=True)]
        documents = documents[:limit]
        for doc in documents:
            doc.source = GRAPH_SOURCE
            doc.relevance = self.calculate_relevance(doc, query)

        return self._result(documents, query, self.calculate_accuracy(documents, query), start)

    async def _enhance(self, doc: SearchResult, query: str, keywords: set[str]) -> float:
        """Set the graph-enhanced similarity on ``doc`` and return it."""
        chunk_id = doc.chunk_id or doc.doc_id
        related, chunk_keywords = await asyncio.gather(
            self.store.get_related_chunks(chunk_id, RELATED_MIN_WEIGHT, RELATED_LIMIT),
            self.store.get_keywords_for_chunk(chunk_id),
        )

        score = doc.similarity
        if chunk_keywords:
            score += jaccard(keywords, {k.lower() for k in chunk_keywords}) * 0.2
        if related:
            score += sum(r.get("weight", 0.0) for r in related) / len(related) * 0.1
        score += concept_relevance(chunk_keywords, query) * 0.15

        doc.similarity = clamp_score(score)
        doc.metadata["related_chunks"] = [r.get("chunk_id") for r in related]
        doc.metadata["keywords"] = list(chunk_keywords)
        return doc.similarity

    @staticmethod
    def calculate_relevance(doc: SearchResult, query: str) -> float:
        return clamp_score(
            doc.similarity + term_presence_bonus(query, doc.content) + 0.1 + length_bonus(doc.content)
        )

    @staticmethod
    def calculate_accuracy(documents: list[SearchResult], query: str) -> float:
        if not documents:
            return 0.0
        avg_similarity = sum(d.similarity for d in documents) / len(documents)
        coverage = term_coverage(query, [d.content for d in documents])
        graph_bonus = 0.2 if any(d.source == GRAPH_SOURCE for d in documents) else 0.0
        return (avg_similarity + coverage + graph_bonus) / 3
