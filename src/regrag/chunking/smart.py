"""
Smart chunking pipeline.

Detects the shape of a text (Q&A, topic headings, or plain prose), runs the
matching specialised chunker together with the contextual chunker, merges
near-duplicates, and then enriches the result in place:

1. image chunks from the multimodal side channel
2. frequency keywords
3. neighbour context extension
4. adjacency and keyword-similarity relationships
5. coarse concepts from a fixed thesaurus
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations
from typing import Any

from ..models import Chunk
from ..observability.logging import get_logger
from .contextual import ContextualChunker, apply_context_extension
from .multimodal import MultiModalChunker
from .question_answer import QuestionAnswerChunker
from .text import extract_keywords, jaccard
from .topic import TopicBasedChunker

logger = get_logger(__name__)

MERGE_THRESHOLD = 0.7
RELATIONSHIP_THRESHOLD = 0.3
ADJACENT_WEIGHT = 0.8

_QA_MARKERS = [
    re.compile(r"\b(?:question|q\.|q:)\s*\d+[.:]?\s*\w+", re.IGNORECASE),
    re.compile(r"\b(?:answer|a\.|a:)\s*\d+[.:]?\s*\w+", re.IGNORECASE),
    re.compile(r"\b(?:q&a|faq)\b", re.IGNORECASE),
]
_TOPIC_MARKERS = [
    re.compile(r"\b(?:chapter|section|topic|subject)\s*\d+[.:]?\s*\w+", re.IGNORECASE),
    re.compile(r"\b(?:heading|title)\s*:\s*\w+", re.IGNORECASE),
]

CONCEPT_THESAURUS: dict[str, list[str]] = {
    "regulation": ["regulation", "regulatory", "compliance", "legal"],
    "financial": ["financial", "finance", "economic", "monetary"],
    "policy": ["policy", "policies", "guidelines", "procedures"],
    "report": ["report", "reporting", "documentation", "records"],
}
_KEYWORD_TO_CONCEPT = {
    keyword: concept for concept, keywords in CONCEPT_THESAURUS.items() for keyword in keywords
}

SMART_STRATEGIES = ("smart", "question_answer", "topic_based", "contextual")


@dataclass
class SmartChunkingOptions:
    chunking_strategy: str = "smart"
    enable_image_processing: bool = True
    enable_keyword_extraction: bool = True
    enable_context_extension: bool = True
    context_extension_size: int = 500
    enable_relationship_mapping: bool = True
    enable_concept_mapping: bool = True


def detect_content_type(content: str) -> str:
    """``question_answer``, ``topic_based`` or ``contextual``."""
    if any(p.search(content) for p in _QA_MARKERS):
        return "question_answer"
    if any(p.search(content) for p in _TOPIC_MARKERS):
        return "topic_based"
    return "contextual"


def merge_overlapping(chunks: list[Chunk]) -> list[Chunk]:
    """
    Fold each chunk into the first earlier survivor whose keyword Jaccard
    exceeds the merge threshold. References to absorbed ids are redirected
    to the survivor.
    """
    survivors: list[Chunk] = []
    absorbed: dict[str, str] = {}

    for chunk in chunks:
        target = next(
            (s for s in survivors if s.keywords and chunk.keywords
             and jaccard(s.keywords, chunk.keywords) > MERGE_THRESHOLD),
            None,
        )
        if target is None:
            survivors.append(chunk)
            continue

        target.content = f"{target.content}\n\n{chunk.content}"
        target.keywords = list(dict.fromkeys(target.keywords + chunk.keywords))
        for other_id, weight in chunk.relationship_weights.items():
            target.relationship_weights.setdefault(other_id, weight)
        originals = target.metadata.get("original_chunks", [target.id])
        target.metadata = {
            **chunk.metadata,
            **target.metadata,
            "merged": True,
            "original_chunks": originals + [chunk.id],
        }
        absorbed[chunk.id] = target.id

    for survivor in survivors:
        weights: dict[str, float] = {}
        for other_id, weight in survivor.relationship_weights.items():
            other_id = absorbed.get(other_id, other_id)
            if other_id != survivor.id:
                weights[other_id] = max(weight, weights.get(other_id, 0.0))
        survivor.relationship_weights = weights
        survivor.related_chunks = list(weights)
    return survivors


def map_relationships(chunks: list[Chunk]) -> list[Chunk]:
    """
    Adjacent chunks are linked at 0.8; any pair whose keyword Jaccard exceeds
    0.3 is linked at that similarity. Candidate pairs come from an inverted
    keyword index, so only chunks sharing a keyword are compared.
    """
    for left, right in zip(chunks, chunks[1:]):
        if right.id not in left.relationship_weights:
            left.link(right.id, ADJACENT_WEIGHT)
        if left.id not in right.relationship_weights:
            right.link(left.id, ADJACENT_WEIGHT)

    index: dict[str, list[int]] = defaultdict(list)
    for position, chunk in enumerate(chunks):
        for keyword in set(chunk.keywords):
            index[keyword].append(position)

    candidates: set[tuple[int, int]] = set()
    for positions in index.values():
        candidates.update(combinations(positions, 2))

    for i, j in sorted(candidates):
        similarity = jaccard(chunks[i].keywords, chunks[j].keywords)
        if similarity > RELATIONSHIP_THRESHOLD:
            chunks[i].link(chunks[j].id, similarity)
            chunks[j].link(chunks[i].id, similarity)

    for chunk in chunks:
        chunk.metadata["relationship_count"] = len(chunk.relationship_weights)
    return chunks


def map_concepts(chunks: list[Chunk]) -> list[Chunk]:
    for chunk in chunks:
        concepts = list(dict.fromkeys(_KEYWORD_TO_CONCEPT.get(k, k) for k in chunk.keywords))
        chunk.metadata["concepts"] = concepts
        chunk.metadata["concept_count"] = len(concepts)
    return chunks


class SmartChunker:
    """Runs the content-level chunkers and the enrichment passes."""

    def __init__(
        self,
        question_answer: QuestionAnswerChunker | None = None,
        topic_based: TopicBasedChunker | None = None,
        contextual: ContextualChunker | None = None,
        multimodal: MultiModalChunker | None = None,
    ):
        self.question_answer = question_answer or QuestionAnswerChunker()
        self.topic_based = topic_based or TopicBasedChunker()
        self.contextual = contextual or ContextualChunker()
        self.multimodal = multimodal or MultiModalChunker()

    def chunk_document(
        self,
        content: str,
        metadata: dict[str, Any] | None = None,
        options: SmartChunkingOptions | None = None,
        prefix: str = "doc",
    ) -> list[Chunk]:
        options = options or SmartChunkingOptions()
        metadata = metadata or {}

        if options.chunking_strategy not in SMART_STRATEGIES:
            raise ValueError(
                f"Unknown chunking strategy '{options.chunking_strategy}'. "
                f"Expected one of: {', '.join(SMART_STRATEGIES)}"
            )

        if options.chunking_strategy == "question_answer":
            chunks = self.question_answer.chunk(content, metadata, prefix)
        elif options.chunking_strategy == "topic_based":
            chunks = self.topic_based.chunk(content, metadata, prefix)
        elif options.chunking_strategy == "contextual":
            chunks = self.contextual.chunk(content, metadata, prefix)
        else:
            chunks = self._smart_chunks(content, metadata, prefix)

        if options.enable_image_processing:
            chunks.extend(self.multimodal.extract_images(content, metadata, prefix))

        if options.enable_keyword_extraction:
            for chunk in chunks:
                keywords = extract_keywords(chunk.content, top_n=10, min_length=3, min_count=2)
                # Short chunks rarely repeat a word; keep the chunker's own keywords then
                if keywords:
                    chunk.keywords = keywords
                chunk.metadata["keyword_count"] = len(chunk.keywords)

        if options.enable_context_extension:
            apply_context_extension(chunks, options.context_extension_size)

        if options.enable_relationship_mapping:
            map_relationships(chunks)

        if options.enable_concept_mapping:
            map_concepts(chunks)

        logger.info(
            f"Smart chunking produced {len(chunks)} chunks",
            prefix=prefix,
            strategy=options.chunking_strategy,
        )
        return chunks

    def _smart_chunks(self, content: str, metadata: dict[str, Any], prefix: str) -> list[Chunk]:
        content_type = detect_content_type(content)
        chunks: list[Chunk] = []
        if content_type == "question_answer":
            chunks.extend(self.question_answer.chunk(content, metadata, prefix))
        elif content_type == "topic_based":
            chunks.extend(self.topic_based.chunk(content, metadata, prefix))
        chunks.extend(self.contextual.chunk(content, metadata, prefix))
        return merge_overlapping(chunks)
