"""
Document ingestion into the store and knowledge graph.
"""

from .pipeline import (
    IngestionOptions,
    IngestionPipeline,
    IngestionResult,
    assign_chunk_ids,
    chunk_uuid,
)

__all__ = [
    "IngestionOptions",
    "IngestionPipeline",
    "IngestionResult",
    "assign_chunk_ids",
    "chunk_uuid",
]
