"""
Retrieval strategies and their registry.
"""

from .base import RetrievalStrategy, assemble_context
from .factory import RetrievalStrategyFactory, StrategyLookup
from .hybrid import HybridSearchStrategy
from .keyword import KeywordSearchStrategy
from .knowledge_graph import KnowledgeGraphSearchStrategy
from .vector import VectorSearchStrategy

__all__ = [
    "RetrievalStrategy",
    "assemble_context",
    "RetrievalStrategyFactory",
    "StrategyLookup",
    "HybridSearchStrategy",
    "KeywordSearchStrategy",
    "KnowledgeGraphSearchStrategy",
    "VectorSearchStrategy",
]
