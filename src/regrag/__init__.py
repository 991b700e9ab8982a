"""
regrag: retrieval-augmented generation core for regulatory documents.

Documents are split into chunks by heuristic strategies, linked into a light
knowledge graph, and retrieved through competing strategies whose results are
re-ranked and assembled into a token-bounded context.
"""

from .core.orchestrator import RAGOrchestrator, RAGRequest, RAGResponse
from .errors import RAGError, StrategyNotFoundError, ValidationError
from .models import Chunk, ChunkType, DocumentInfo, RetrievalResult, SearchResult

__version__ = "0.1.0"

__all__ = [
    "Chunk",
    "ChunkType",
    "DocumentInfo",
    "RAGError",
    "RAGOrchestrator",
    "RAGRequest",
    "RAGResponse",
    "RetrievalResult",
    "SearchResult",
    "StrategyNotFoundError",
    "ValidationError",
]
