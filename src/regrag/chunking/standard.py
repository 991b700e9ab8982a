"""
Sentence packing with a trailing-word overlap between chunks.
"""

from ..models import Chunk, DocumentInfo
from ..observability.logging import get_logger
from .base import ChunkingOptions, ChunkingStrategy, pack_sentences
from .features import has_meaningful_content, has_structured_content

logger = get_logger(__name__)


class StandardChunker(ChunkingStrategy):
    """Fallback for documents with neither meaning signals nor structure."""

    name = "standard_chunking"

    def __init__(self, max_tokens: int = 300, overlap_percentage: int = 10):
        self.max_tokens = max_tokens
        self.overlap_percentage = overlap_percentage

    def is_applicable(self, document: DocumentInfo) -> bool:
        text = " ".join(document.body_content)
        return not has_meaningful_content(text) and not has_structured_content(text)

    async def chunk(
        self, document: DocumentInfo, options: ChunkingOptions | None = None
    ) -> list[Chunk]:
        options = options or ChunkingOptions()
        max_tokens = options.max_tokens or self.max_tokens
        pct = self.overlap_percentage if options.overlap_percentage is None else options.overlap_percentage
        overlap_tokens = max_tokens * pct // 100

        pieces = pack_sentences(document.full_text, max_tokens, overlap_tokens)
        chunks = [
            self._make_chunk(document, f"{document.doc_id}_chunk_{i}", piece, "main_content")
            for i, piece in enumerate(pieces, start=1)
        ]
        logger.info(
            f"Created {len(chunks)} standard chunks", doc_id=document.doc_id, max_tokens=max_tokens
        )
        return chunks
