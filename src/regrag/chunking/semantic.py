"""
Semantic chunking with four interchangeable grouping algorithms.

- proposition_based: an LLM extracts atomic propositions and groups them
- clustering: adjacent sentences are grouped while word overlap stays high
- double_pass: a strict first grouping followed by a pairwise merge pass
- standard_deviation: plain greedy sentence packing to a token ceiling
"""

import json
from enum import Enum

from ..errors import GenerationError
from ..models import Chunk, DocumentInfo
from ..observability.logging import get_logger
from ..storage.base import TextGenerator
from .base import ChunkingOptions, ChunkingStrategy, pack_sentences
from .features import has_meaningful_content, is_order_important, needs_non_adjacent_analysis
from .text import jaccard, split_sentences, word_set

logger = get_logger(__name__)

CLUSTER_THRESHOLD = 0.3
INITIAL_PASS_THRESHOLD = 0.4
MERGE_PASS_THRESHOLD = 0.3

PROPOSITION_PROMPT = """Extract atomic propositions from the following regulatory document text. \
Each proposition should be a concise, self-contained fact or statement.

Document Information:
- Title: {title}
- Document Type: {doc_type_code} ({doc_type_desc})
- Version: {version}

Text:
{text}

Return the propositions as a JSON array of strings."""

GROUPING_PROMPT = """Group the following propositions into semantically coherent chunks. \
Each chunk should contain related propositions that form a meaningful unit.

Document: {title}

Propositions:
{propositions}

Return the groups as a JSON array of arrays of strings."""


class SemanticVariant(str, Enum):
    PROPOSITION_BASED = "proposition_based"
    CLUSTERING = "clustering"
    DOUBLE_PASS = "double_pass"
    STANDARD_DEVIATION = "standard_deviation"


_SECTION_TYPES = {
    SemanticVariant.PROPOSITION_BASED: "semantic_chunk",
    SemanticVariant.CLUSTERING: "semantic_cluster",
    SemanticVariant.DOUBLE_PASS: "semantic_merged",
    SemanticVariant.STANDARD_DEVIATION: "semantic_chunk",
}


def choose_variant(text: str, llm_available: bool) -> SemanticVariant:
    if llm_available:
        return SemanticVariant.PROPOSITION_BASED
    if not is_order_important(text):
        return SemanticVariant.CLUSTERING
    if needs_non_adjacent_analysis(text):
        return SemanticVariant.DOUBLE_PASS
    return SemanticVariant.STANDARD_DEVIATION


def cluster_sentences(sentences: list[str], threshold: float) -> list[list[str]]:
    """Group consecutive sentences while adjacent word-set Jaccard exceeds ``threshold``."""
    groups: list[list[str]] = []
    current: list[str] = []
    for sentence in sentences:
        if current and jaccard(word_set(current[-1]), word_set(sentence)) <= threshold:
            groups.append(current)
            current = []
        current.append(sentence)
    if current:
        groups.append(current)
    return groups


def merge_adjacent_groups(groups: list[list[str]], threshold: float) -> list[list[str]]:
    """Merge a group into its successor when their texts overlap; merged pairs are not re-merged."""
    merged: list[list[str]] = []
    i = 0
    while i < len(groups):
        if i + 1 < len(groups):
            similarity = jaccard(word_set(" ".join(groups[i])), word_set(" ".join(groups[i + 1])))
            if similarity > threshold:
                merged.append(groups[i] + groups[i + 1])
                i += 2
                continue
        merged.append(groups[i])
        i += 1
    return merged


class SemanticChunker(ChunkingStrategy):
    """Chunk by meaning. The variant is fixed at construction or chosen per document."""

    name = "semantic_chunking"

    def __init__(
        self,
        variant: SemanticVariant | None = None,
        generator: TextGenerator | None = None,
        llm_available: bool = False,
        max_tokens: int = 1000,
    ):
        self.variant = variant
        self.generator = generator
        self.llm_available = llm_available and generator is not None
        self.max_tokens = max_tokens

    def is_applicable(self, document: DocumentInfo) -> bool:
        text = " ".join(document.body_content)
        return has_meaningful_content(text) and is_order_important(text)

    async def chunk(
        self, document: DocumentInfo, options: ChunkingOptions | None = None
    ) -> list[Chunk]:
        options = options or ChunkingOptions()
        max_tokens = options.max_tokens or self.max_tokens
        variant = self.variant or choose_variant(" ".join(document.body_content), self.llm_available)

        logger.info(f"Semantic chunking with {variant.value}", doc_id=document.doc_id)

        if variant is SemanticVariant.PROPOSITION_BASED:
            try:
                groups = await self._proposition_groups(document)
            except (GenerationError, ValueError, TypeError) as e:
                logger.warning(
                    f"Proposition chunking failed, falling back to token packing: {e}",
                    doc_id=document.doc_id,
                )
                variant = SemanticVariant.STANDARD_DEVIATION
            else:
                return self._to_chunks(document, [" ".join(g) for g in groups], variant)

        sentences = split_sentences(document.full_text)
        if variant is SemanticVariant.CLUSTERING:
            pieces = [" ".join(g) for g in cluster_sentences(sentences, CLUSTER_THRESHOLD)]
        elif variant is SemanticVariant.DOUBLE_PASS:
            initial = cluster_sentences(sentences, INITIAL_PASS_THRESHOLD)
            pieces = [" ".join(g) for g in merge_adjacent_groups(initial, MERGE_PASS_THRESHOLD)]
        else:
            pieces = pack_sentences(document.full_text, max_tokens)

        return self._to_chunks(document, pieces, variant)

    async def _proposition_groups(self, document: DocumentInfo) -> list[list[str]]:
        if self.generator is None:
            raise GenerationError("no text generator configured")

        raw = await self.generator.generate(
            PROPOSITION_PROMPT.format(
                title=document.title,
                doc_type_code=document.doc_type_code,
                doc_type_desc=document.doc_type_desc,
                version=document.version,
                text=document.full_text,
            )
        )
        propositions = json.loads(raw)
        if not isinstance(propositions, list) or not all(isinstance(p, str) for p in propositions):
            raise ValueError("propositions must be a JSON array of strings")

        listing = "\n".join(f"{i}. {p}" for i, p in enumerate(propositions, start=1))
        raw_groups = await self.generator.generate(
            GROUPING_PROMPT.format(title=document.title, propositions=listing)
        )
        groups = json.loads(raw_groups)
        if not isinstance(groups, list) or not all(isinstance(g, list) for g in groups):
            raise ValueError("groups must be a JSON array of arrays")
        return [[str(p) for p in g] for g in groups if g]

    def _to_chunks(self, document: DocumentInfo, pieces: list[str], variant: SemanticVariant) -> list[Chunk]:
        chunks = [
            self._make_chunk(
                document,
                f"{document.doc_id}_chunk_{i}",
                piece,
                _SECTION_TYPES[variant],
                chunking_strategy=variant.value,
            )
            for i, piece in enumerate(pieces, start=1)
            if piece.strip()
        ]
        logger.info(f"Created {len(chunks)} {variant.value} chunks", doc_id=document.doc_id)
        return chunks
