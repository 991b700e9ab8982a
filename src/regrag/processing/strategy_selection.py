"""Maps an intent and its entities to a retrieval strategy name."""

from abc import ABC, abstractmethod

from .intent import QueryIntent

BASIC_STRATEGY_BY_INTENT = {
    QueryIntent.REGULATORY_INQUIRY: "hybrid",
    QueryIntent.RISK_ASSESSMENT: "vector",
    QueryIntent.PROCEDURAL_INQUIRY: "keyword",
}

SPECIFIC_TERMS = {"basel iii", "tier 1", "capital requirement", "ratio"}
PROCEDURAL_TERMS = {"procedure", "process", "step", "method"}
REGULATORY_TERMS = {"regulation", "compliance", "requirement", "standard"}


class StrategySelector(ABC):
    @abstractmethod
    def select_strategy(self, intent: QueryIntent, entities: list[str]) -> str:
        ...


class BasicStrategySelector(StrategySelector):
    def select_strategy(self, intent: QueryIntent, entities: list[str]) -> str:
        return BASIC_STRATEGY_BY_INTENT.get(intent, "vector")


class AdvancedStrategySelector(BasicStrategySelector):
    """
    Entity-aware selection. Complex general queries go to the knowledge-graph
    strategy, which is the semantic option among the registered strategies.
    """

    def select_strategy(self, intent: QueryIntent, entities: list[str]) -> str:
        lowered = {e.lower() for e in entities}
        if lowered & SPECIFIC_TERMS:
            return "hybrid"
        if lowered & PROCEDURAL_TERMS:
            return "keyword"
        if intent is QueryIntent.GENERAL_INQUIRY and len(entities) > 2:
            return "knowledge_graph"
        if lowered & REGULATORY_TERMS:
            return "hybrid"
        return super().select_strategy(intent, entities)
