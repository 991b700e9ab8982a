"""Knowledge graph construction and lookup."""

from .builder import (
    KnowledgeGraphBuilder,
    KnowledgeGraphOptions,
    KnowledgeGraphQueryResult,
    KnowledgeGraphResult,
    is_valid_chunk_id,
)

__all__ = [
    "KnowledgeGraphBuilder",
    "KnowledgeGraphOptions",
    "KnowledgeGraphQueryResult",
    "KnowledgeGraphResult",
    "is_valid_chunk_id",
]
