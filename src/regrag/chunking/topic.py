"""
Topic/subsection chunking driven by heading heuristics.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from ..models import Chunk, ChunkType
from ..observability.logging import get_logger
from .base import ContentChunker
from .text import STRUCTURE_WORDS, extract_keywords

logger = get_logger(__name__)

SUBSECTION_WEIGHT = 0.7

_TOPIC_HEADINGS = [
    re.compile(r"^(?:chapter|section|topic|subject)\s*\d+[.:]?\s*\w+", re.IGNORECASE),
    re.compile(r"^(?:heading|title)\s*:\s*\w+", re.IGNORECASE),
    re.compile(r"^[A-Z][A-Z\s]{3,}$"),
    re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s*$"),
    re.compile(r"^\d+\.\s+[A-Z][a-z]+"),
]

_SUBSECTION_HEADINGS = [
    re.compile(r"^\d+\.\d+\s+[A-Z][a-z]+"),
    re.compile(r"^[a-z]\)\s+[A-Z][a-z]+"),
    re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s*$"),
    re.compile(r"^[A-Z][A-Z\s]{2,}$"),
]


def is_topic_heading(line: str) -> bool:
    return any(p.search(line) for p in _TOPIC_HEADINGS)


def is_subsection_heading(line: str) -> bool:
    return any(p.search(line) for p in _SUBSECTION_HEADINGS)


@dataclass
class TopicSection:
    heading: str
    lines: list[str] = field(default_factory=list)
    subsections: list["TopicSection"] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n".join([self.heading, *self.lines]) if self.heading else "\n".join(self.lines)


def extract_topics(content: str) -> list[TopicSection]:
    """
    Group lines under topic headings, and lines after a subsection heading
    under that subsection. Text before the first heading becomes a preamble.
    """
    topics: list[TopicSection] = []
    topic: TopicSection | None = None
    target: TopicSection | None = None

    for line in (raw.strip() for raw in content.split("\n")):
        if not line:
            continue
        if is_topic_heading(line):
            topic = TopicSection(heading=line)
            topics.append(topic)
            target = topic
        elif is_subsection_heading(line) and topic is not None:
            target = TopicSection(heading=line)
            topic.subsections.append(target)
        else:
            if target is None:
                topic = TopicSection(heading="")
                topics.append(topic)
                target = topic
            target.lines.append(line)

    return topics


class TopicBasedChunker(ContentChunker):
    name = "topic_based"
    description = "Chunks content by topics and subsections, maintaining hierarchical relationships"

    def chunk(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        metadata = metadata or {}
        chunks: list[Chunk] = []

        for i, section in enumerate(extract_topics(content)):
            topic_chunk = Chunk(
                id=f"{prefix}_topic_{i}",
                content=section.content,
                chunk_type=ChunkType.TOPIC,
                keywords=self._keywords(section.content),
                metadata={
                    **metadata,
                    "topic": section.heading or "Preamble",
                    "topic_index": i,
                    "subsection_count": len(section.subsections),
                },
            )
            chunks.append(topic_chunk)

            for j, sub in enumerate(section.subsections):
                sub_chunk = Chunk(
                    id=f"{prefix}_subsection_{i}_{j}",
                    content=sub.content,
                    chunk_type=ChunkType.SUBSECTION,
                    keywords=self._keywords(sub.content),
                    metadata={
                        **metadata,
                        "topic": sub.heading,
                        "parent_topic": topic_chunk.metadata["topic"],
                        "topic_index": i,
                        "subsection_index": j,
                        "parent_chunk_id": topic_chunk.id,
                    },
                )
                sub_chunk.link(topic_chunk.id, SUBSECTION_WEIGHT)
                topic_chunk.link(sub_chunk.id, SUBSECTION_WEIGHT)
                chunks.append(sub_chunk)

        return chunks

    @staticmethod
    def _keywords(text: str) -> list[str]:
        return extract_keywords(text, top_n=8, min_length=3, extra_stopwords=STRUCTURE_WORDS)
