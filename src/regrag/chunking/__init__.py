"""Chunking strategies, the strategy selector and the smart pipeline."""

from .base import ChunkingOptions, ChunkingStrategy, ContentChunker
from .contextual import ContextualChunker
from .hierarchical import HierarchicalChunker
from .multimodal import MultiModalChunker
from .question_answer import QuestionAnswerChunker
from .selector import ChunkingStrategySelector, StrategySelection
from .semantic import SemanticChunker, SemanticVariant
from .smart import SmartChunker, SmartChunkingOptions
from .standard import StandardChunker
from .topic import TopicBasedChunker

__all__ = [
    "ChunkingOptions",
    "ChunkingStrategy",
    "ChunkingStrategySelector",
    "ContentChunker",
    "ContextualChunker",
    "HierarchicalChunker",
    "MultiModalChunker",
    "QuestionAnswerChunker",
    "SemanticChunker",
    "SemanticVariant",
    "SmartChunker",
    "SmartChunkingOptions",
    "StandardChunker",
    "StrategySelection",
    "TopicBasedChunker",
]
