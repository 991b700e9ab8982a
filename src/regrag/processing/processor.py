"""
Query processing pipeline: entities, intent, strategy hint and expansion.

The processor never raises; any failure yields a fallback analysis that
points at vector search and reports ``fallback`` as its only tool.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from ..observability.logging import get_logger
from ..observability.probe import probe
from .entities import AdvancedEntityExtractor, BasicEntityExtractor, EntityExtractor
from .expansion import AdvancedQueryExpander, BasicQueryExpander, ExpandedQuery, QueryExpander
from .intent import AdvancedIntentClassifier, BasicIntentClassifier, IntentClassifier, QueryIntent
from .strategy_selection import AdvancedStrategySelector, BasicStrategySelector, StrategySelector

logger = get_logger(__name__)

DOMAIN_TERMS = ["basel", "capital", "tier", "regulation", "requirement"]
FALLBACK_TOOL = "fallback"


@dataclass
class QueryAnalysis:
    intent: QueryIntent
    entities: list[str]
    search_strategy: str
    confidence: float
    original_query: str
    processed_query: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.value,
            "entities": list(self.entities),
            "search_strategy": self.search_strategy,
            "confidence": self.confidence,
            "original_query": self.original_query,
            "processed_query": self.processed_query,
        }


@dataclass
class QueryProcessingResult:
    analysis: QueryAnalysis
    expansion: ExpandedQuery
    processing_time_ms: float
    tools_used: list[str] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.tools_used == [FALLBACK_TOOL]


def calculate_confidence(
    query: str, intent: QueryIntent, entities: list[str], expansion: ExpandedQuery
) -> float:
    confidence = 0.5 + len(entities) * 0.1
    if intent is not QueryIntent.GENERAL_INQUIRY:
        confidence += 0.2
    if len(query) > 20:
        confidence += 0.1
    confidence += expansion.confidence * 0.2
    return min(confidence, 1.0)


def create_processed_query(query: str, expansion: ExpandedQuery) -> str:
    """The first expansion that mentions a domain term, else the query itself."""
    if len(expansion.expanded) > 1:
        for candidate in expansion.expanded:
            lowered = candidate.lower()
            if any(term in lowered for term in DOMAIN_TERMS):
                return candidate
    return query


class QueryProcessor:
    def __init__(
        self,
        entity_extractor: EntityExtractor,
        intent_classifier: IntentClassifier,
        query_expander: QueryExpander,
        strategy_selector: StrategySelector,
        name: str = "QueryProcessor",
    ):
        self.entity_extractor = entity_extractor
        self.intent_classifier = intent_classifier
        self.query_expander = query_expander
        self.strategy_selector = strategy_selector
        self.name = name

    async def process(self, query: str) -> QueryProcessingResult:
        start = time.perf_counter()
        tools_used: list[str] = []

        try:
            with probe("query.process", processor=self.name):
                tools_used.append("entity_extraction")
                entities = await self.entity_extractor.extract_entities(query)

                tools_used.append("intent_classification")
                intent = await self.intent_classifier.classify_intent(query)

                tools_used.append("strategy_selection")
                strategy = self.strategy_selector.select_strategy(intent, entities)

                tools_used.append("query_expansion")
                expansion = await self.query_expander.expand_query(query)

            analysis = QueryAnalysis(
                intent=intent,
                entities=entities,
                search_strategy=strategy,
                confidence=calculate_confidence(query, intent, entities, expansion),
                original_query=query,
                processed_query=create_processed_query(query, expansion),
            )
            return QueryProcessingResult(
                analysis=analysis,
                expansion=expansion,
                processing_time_ms=(time.perf_counter() - start) * 1000,
                tools_used=tools_used,
            )
        except Exception as e:
            logger.error(f"Query processing failed: {e}", step=tools_used[-1] if tools_used else None)
            return self.fallback(query, (time.perf_counter() - start) * 1000)

    @staticmethod
    def fallback(query: str, processing_time_ms: float = 0.0) -> QueryProcessingResult:
        return QueryProcessingResult(
            analysis=QueryAnalysis(
                intent=QueryIntent.GENERAL_INQUIRY,
                entities=[],
                search_strategy="vector",
                confidence=0.5,
                original_query=query,
                processed_query=query,
            ),
            expansion=ExpandedQuery(original=query, expanded=[query], confidence=0.5),
            processing_time_ms=processing_time_ms,
            tools_used=[FALLBACK_TOOL],
        )


def create_basic_processor() -> QueryProcessor:
    return QueryProcessor(
        BasicEntityExtractor(),
        BasicIntentClassifier(),
        BasicQueryExpander(),
        BasicStrategySelector(),
        name="BasicQueryProcessor",
    )


def create_advanced_processor() -> QueryProcessor:
    return QueryProcessor(
        AdvancedEntityExtractor(),
        AdvancedIntentClassifier(),
        AdvancedQueryExpander(),
        AdvancedStrategySelector(),
        name="AdvancedQueryProcessor",
    )
