"""Full-text keyword search with term-match scoring."""

import re
import time

from ..chunking.text import query_terms
from ..models import RetrievalResult, SearchResult, clamp_score
from ..storage.base import DocumentStore
from .base import DEFAULT_MAX_CONTEXT_TOKENS, RetrievalStrategy, coverage_accuracy, length_bonus

EXACT_PHRASE_BONUS = 0.3


def keyword_similarity(query: str, content: str) -> float:
    """Fraction of query terms present in ``content``."""
    terms = query_terms(query)
    if not terms:
        return 0.0
    lowered = content.lower()
    return sum(1 for t in terms if t in lowered) / len(terms)


def term_frequency(query: str, content: str) -> int:
    lowered = content.lower()
    return sum(len(re.findall(re.escape(t), lowered)) for t in query_terms(query))


class KeywordSearchStrategy(RetrievalStrategy):
    name = "keyword"
    description = "Traditional keyword-based search using text matching"
    tools = ("keyword_search",)

    def __init__(self, store: DocumentStore, max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS):
        super().__init__(max_context_tokens)
        self.store = store

    async def run(self, query: str, limit: int = 5) -> RetrievalResult:
        start = time.perf_counter()
        documents = await self.store.full_text_search(query, limit)
        for doc in documents:
            doc.similarity = keyword_similarity(query, doc.content)
            doc.relevance = self.calculate_relevance(doc, query)
        return self._result(documents, query, coverage_accuracy(documents, query), start)

    @staticmethod
    def calculate_relevance(doc: SearchResult, query: str) -> float:
        score = doc.similarity
        if query.lower() in doc.content.lower():
            score += EXACT_PHRASE_BONUS
        score += length_bonus(doc.content)
        score += min(term_frequency(query, doc.content) / 10, 0.2)
        return clamp_score(score)
