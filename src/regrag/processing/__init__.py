"""
Query understanding: entity extraction, intent classification, expansion and
strategy selection.
"""

from .entities import AdvancedEntityExtractor, BasicEntityExtractor, EntityExtractor
from .expansion import AdvancedQueryExpander, BasicQueryExpander, ExpandedQuery, QueryExpander
from .intent import AdvancedIntentClassifier, BasicIntentClassifier, IntentClassifier, QueryIntent
from .processor import (
    QueryAnalysis,
    QueryProcessingResult,
    QueryProcessor,
    create_advanced_processor,
    create_basic_processor,
)
from .strategy_selection import AdvancedStrategySelector, BasicStrategySelector, StrategySelector

__all__ = [
    "AdvancedEntityExtractor",
    "BasicEntityExtractor",
    "EntityExtractor",
    "AdvancedQueryExpander",
    "BasicQueryExpander",
    "ExpandedQuery",
    "QueryExpander",
    "AdvancedIntentClassifier",
    "BasicIntentClassifier",
    "IntentClassifier",
    "QueryIntent",
    "QueryAnalysis",
    "QueryProcessingResult",
    "QueryProcessor",
    "create_advanced_processor",
    "create_basic_processor",
    "AdvancedStrategySelector",
    "BasicStrategySelector",
    "StrategySelector",
]
