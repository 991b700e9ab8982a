"""
Question/answer chunking for FAQ-style documents.
"""

import re
from dataclasses import dataclass
from typing import Any

from ..models import Chunk, ChunkType
from ..observability.logging import get_logger
from .base import ContentChunker
from .text import extract_keywords

logger = get_logger(__name__)

QA_WEIGHT = 0.9

# (pattern, question group, answer group), tried in order; the first pattern
# that yields any pair wins.
_PAIR_PATTERNS: list[tuple[re.Pattern[str], int, int]] = [
    (
        re.compile(
            r"\b(?i:Question|Q)\s*(\d+)[.:]?\s*(.+?)\s*\b(?i:Answer|A)\s*\1[.:]?\s*(.+?)"
            r"(?=\b(?i:Question|Q)\s*\d|$)",
            re.DOTALL,
        ),
        2,
        3,
    ),
    (
        re.compile(
            r"\b(?i:Question|Q)\s*:\s*(.+?)\s*\b(?i:Answer|A)\s*:\s*(.+?)(?=\b(?i:Question|Q)\s*:|$)",
            re.DOTALL,
        ),
        1,
        2,
    ),
    (
        re.compile(
            r"(?i:Q&A|FAQ)\s*:?\s*(.+?\?)\s*(?:A:?\s*)?(.+?)(?=(?i:Q&A|FAQ)|$)",
            re.DOTALL,
        ),
        1,
        2,
    ),
    (re.compile(r"(\d+)[.:]?\s*([^?\n]+?\?)\s*([^?\n]+)"), 2, 3),
]

_QUESTION_LINE = [
    re.compile(r"\?$"),
    re.compile(r"^(?:what|who|where|when|why|how|which|whose|whom)\b", re.IGNORECASE),
    re.compile(
        r"^(?:is|are|was|were|do|does|did|can|could|will|would|should|may|might)\s+\w+",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:question|q\.|q:)\s*\d*", re.IGNORECASE),
]


@dataclass
class QuestionAnswerPair:
    question: str
    answer: str


def looks_like_question(line: str) -> bool:
    return any(p.search(line) for p in _QUESTION_LINE)


def extract_pairs(content: str) -> list[QuestionAnswerPair]:
    """Explicit Q/A markup first, then a line scan for question-like lines."""
    for pattern, q_group, a_group in _PAIR_PATTERNS:
        pairs = [
            QuestionAnswerPair(m.group(q_group).strip(), m.group(a_group).strip())
            for m in pattern.finditer(content)
        ]
        pairs = [p for p in pairs if p.question and p.answer]
        if pairs:
            return pairs
    return _scan_lines(content)


def _scan_lines(content: str) -> list[QuestionAnswerPair]:
    pairs: list[QuestionAnswerPair] = []
    question = ""
    answer_lines: list[str] = []

    for line in (raw.strip() for raw in content.split("\n")):
        if not line:
            continue
        if looks_like_question(line):
            if question and answer_lines:
                pairs.append(QuestionAnswerPair(question, "\n".join(answer_lines)))
            question, answer_lines = line, []
        elif question:
            answer_lines.append(line)

    if question and answer_lines:
        pairs.append(QuestionAnswerPair(question, "\n".join(answer_lines)))
    return pairs


class QuestionAnswerChunker(ContentChunker):
    name = "question_answer"
    description = (
        "Chunks content by separating questions and answers into distinct chunks "
        "with high-weight relationships"
    )

    def chunk(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        metadata = metadata or {}
        chunks: list[Chunk] = []

        for i, pair in enumerate(extract_pairs(content)):
            question = Chunk(
                id=f"{prefix}_qa_question_{i}",
                content=pair.question,
                chunk_type=ChunkType.QUESTION,
                keywords=extract_keywords(pair.question, top_n=5, min_length=2),
                metadata={**metadata, "qa_pair_index": i, "is_question": True},
            )
            answer = Chunk(
                id=f"{prefix}_qa_answer_{i}",
                content=pair.answer,
                chunk_type=ChunkType.ANSWER,
                keywords=extract_keywords(pair.answer, top_n=5, min_length=2),
                metadata={**metadata, "qa_pair_index": i, "is_answer": True},
            )
            question.link(answer.id, QA_WEIGHT)
            answer.link(question.id, QA_WEIGHT)
            question.metadata["related_answer"] = answer.id
            answer.metadata["related_question"] = question.id
            chunks.extend([question, answer])

        logger.debug(f"Extracted {len(chunks) // 2} question/answer pairs", prefix=prefix)
        return chunks
