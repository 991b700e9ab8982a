"""
Paragraph-aware chunking with character overlap and neighbour context.
"""

from typing import Any

from ..models import Chunk, ChunkType
from .base import ContentChunker
from .text import CONNECTIVE_WORDS, extract_keywords, split_paragraphs


def apply_context_extension(chunks: list[Chunk], window: int) -> list[Chunk]:
    """
    Store ``prev[-window:] + content + next[:window]`` in ``context_extension``.

    Chunk content is left unchanged.
    """
    for i, chunk in enumerate(chunks):
        parts = []
        if i > 0:
            parts.append(chunks[i - 1].content[-window:])
        parts.append(chunk.content)
        if i < len(chunks) - 1:
            parts.append(chunks[i + 1].content[:window])
        extended = "\n\n".join(parts)

        chunk.context_extension = extended
        chunk.metadata.update(
            {
                "has_context_extension": True,
                "context_extension_size": window,
                "original_content_length": len(chunk.content),
                "extended_content_length": len(extended),
            }
        )
    return chunks


class ContextualChunker(ContentChunker):
    name = "contextual"
    description = "Chunks content with overlapping context and paragraph-aware splitting"

    def __init__(self, chunk_size: int = 2000, overlap_size: int = 200, context_window: int = 500):
        self.chunk_size = chunk_size
        self.overlap_size = overlap_size
        self.context_window = context_window

    def chunk(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        metadata = metadata or {}
        pieces: list[str] = []
        current = ""

        for paragraph in split_paragraphs(content):
            if current and len(current) + len(paragraph) > self.chunk_size:
                pieces.append(current.strip())
                overlap = current[-self.overlap_size:] if self.overlap_size else ""
                current = f"{overlap}\n\n{paragraph}" if overlap else paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph
        if current.strip():
            pieces.append(current.strip())

        chunks = []
        for i, piece in enumerate(pieces):
            keywords = extract_keywords(piece, top_n=10, min_length=3, extra_stopwords=CONNECTIVE_WORDS)
            chunks.append(
                Chunk(
                    id=f"{prefix}_contextual_{i}",
                    content=piece,
                    chunk_type=ChunkType.CONTEXTUAL,
                    keywords=keywords,
                    metadata={
                        **metadata,
                        "chunk_index": i,
                        "chunk_size": len(piece),
                        "keyword_count": len(keywords),
                        "has_overlap": i > 0,
                    },
                )
            )

        return apply_context_extension(chunks, self.context_window)
