"""
Base classes for document-level chunking strategies.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..models import Chunk, ChunkType, DocumentInfo
from .text import estimate_tokens, overlap_words, split_sentences


@dataclass
class ChunkingOptions:
    """Per-call overrides. ``None`` means "use the strategy default"."""

    max_tokens: int | None = None
    overlap_percentage: int | None = None
    parent_chunk_size: int | None = None
    child_chunk_size: int | None = None
    overlap_tokens: int | None = None


class ChunkingStrategy(ABC):
    """Turns a DocumentInfo into a flat list of chunks."""

    name: str = "base"

    @abstractmethod
    async def chunk(
        self, document: DocumentInfo, options: ChunkingOptions | None = None
    ) -> list[Chunk]:
        """Chunk a document."""
        ...

    @abstractmethod
    def is_applicable(self, document: DocumentInfo) -> bool:
        ...

    def _base_metadata(self, document: DocumentInfo, content: str, section_type: str) -> dict[str, Any]:
        return {
            "doc_id": document.doc_id,
            "start_page": 1,
            "end_page": len(document.page_numbers),
            "word_count": len(content.split()),
            "char_count": len(content),
            "has_tables": False,
            "has_images": False,
            "section_type": section_type,
            "chunking_strategy": self.name,
        }

    def _make_chunk(
        self,
        document: DocumentInfo,
        chunk_id: str,
        content: str,
        section_type: str,
        **metadata: Any,
    ) -> Chunk:
        meta = self._base_metadata(document, content, section_type)
        meta.update(metadata)
        return Chunk(id=chunk_id, content=content, chunk_type=ChunkType.BODY, metadata=meta)


def pack_sentences(text: str, max_tokens: int, overlap_tokens: int = 0) -> list[str]:
    """
    Greedily pack sentences into pieces of at most ``max_tokens`` tokens.

    A sentence that would overflow the current piece starts a new one, seeded
    with the trailing words of the previous piece. A single sentence longer
    than the budget becomes its own piece.
    """
    pieces: list[str] = []
    current = ""
    current_tokens = 0

    for sentence in split_sentences(text):
        sentence_tokens = estimate_tokens(sentence)
        if current_tokens + sentence_tokens > max_tokens and current.strip():
            pieces.append(current.strip())
            seed = overlap_words(current, overlap_tokens)
            current = f"{seed} {sentence}" if seed else sentence
            current_tokens = estimate_tokens(current)
        else:
            current = f"{current} {sentence}" if current else sentence
            current_tokens += sentence_tokens

    if current.strip():
        pieces.append(current.strip())
    return pieces


class ContentChunker(ABC):
    """Chunks raw text for the smart pipeline. Ids are prefixed for determinism."""

    name: str = "content"
    description: str = ""

    @abstractmethod
    def chunk(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        ...
