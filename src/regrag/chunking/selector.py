"""
Document-level chunking strategy selection.

The decision tree, in order:

- no meaningful content: Hierarchical when the text is numbered or chaptered,
  otherwise Standard
- LLM available: Semantic proposition_based
- order not important: Semantic clustering
- non-adjacent analysis needed: Semantic double_pass
- otherwise: Semantic standard_deviation
"""

from dataclasses import dataclass

from ..models import Chunk, DocumentInfo
from ..observability.logging import get_logger
from ..storage.base import TextGenerator
from .base import ChunkingOptions, ChunkingStrategy
from .features import (
    has_meaningful_content,
    has_structured_content,
    is_order_important,
    needs_non_adjacent_analysis,
)
from .hierarchical import HierarchicalChunker
from .semantic import SemanticChunker, SemanticVariant
from .standard import StandardChunker

logger = get_logger(__name__)


@dataclass
class StrategySelection:
    strategy: ChunkingStrategy
    variant: SemanticVariant | None
    reason: str

    @property
    def name(self) -> str:
        return self.variant.value if self.variant else self.strategy.name


class ChunkingStrategySelector:
    """Picks a chunker for a document. LLM capability is fixed at construction."""

    def __init__(
        self,
        llm_available: bool = False,
        generator: TextGenerator | None = None,
        standard: StandardChunker | None = None,
        hierarchical: HierarchicalChunker | None = None,
        semantic_max_tokens: int = 1000,
    ):
        self.llm_available = llm_available and generator is not None
        self.generator = generator
        self.standard = standard or StandardChunker()
        self.hierarchical = hierarchical or HierarchicalChunker()
        self.semantic_max_tokens = semantic_max_tokens

    def select(self, document: DocumentInfo) -> StrategySelection:
        text = " ".join(document.body_content)

        if not has_meaningful_content(text):
            if has_structured_content(text):
                return StrategySelection(self.hierarchical, None, "structured content without meaning signals")
            return StrategySelection(self.standard, None, "no meaningful content or structure")

        if self.llm_available:
            variant, reason = SemanticVariant.PROPOSITION_BASED, "LLM available"
        elif not is_order_important(text):
            variant, reason = SemanticVariant.CLUSTERING, "sentence order not important"
        elif needs_non_adjacent_analysis(text):
            variant, reason = SemanticVariant.DOUBLE_PASS, "non-adjacent analysis needed"
        else:
            variant, reason = SemanticVariant.STANDARD_DEVIATION, "ordered content"

        semantic = SemanticChunker(
            variant=variant,
            generator=self.generator,
            llm_available=self.llm_available,
            max_tokens=self.semantic_max_tokens,
        )
        return StrategySelection(semantic, variant, reason)

    async def chunk_document(
        self, document: DocumentInfo, options: ChunkingOptions | None = None
    ) -> list[Chunk]:
        selection = self.select(document)
        logger.info(
            f"Selected {selection.name} chunking",
            doc_id=document.doc_id,
            reason=selection.reason,
        )
        return await selection.strategy.chunk(document, options)
