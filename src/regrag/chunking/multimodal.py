"""
Image and figure reference extraction.

MultiModalChunker produces no text chunks of its own; ``extract_images``
is an enrichment side channel used by the smart pipeline.
"""

import re
from typing import Any

from ..models import Chunk, ChunkType
from .base import ContentChunker
from .text import extract_keywords

RELATED_TEXT_WINDOW = 200

_IMAGE_PATTERNS = [
    re.compile(r"!\[([^\]]*)\]\(([^)]+)\)"),
    re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"\b(?:image|figure|chart|table|diagram)\s*(?:#\d+)?\s*:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+"),
]

_VISUAL_WORDS = frozenset({"image", "figure", "chart", "table", "diagram", "photo", "picture"})


def detect_image_type(reference: str) -> str:
    lowered = reference.lower()
    if "chart" in lowered or "graph" in lowered:
        return "chart"
    if "table" in lowered:
        return "table"
    if "diagram" in lowered:
        return "diagram"
    if "figure" in lowered:
        return "figure"
    if "photo" in lowered or "image" in lowered:
        return "photo"
    return "image"


class MultiModalChunker(ContentChunker):
    name = "multimodal"
    description = "Extracts images, charts and other visual references with their surrounding text"

    def chunk(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        return []

    def extract_images(self, content: str, metadata: dict[str, Any] | None = None, prefix: str = "doc") -> list[Chunk]:
        metadata = metadata or {}
        chunks: list[Chunk] = []

        for pattern in _IMAGE_PATTERNS:
            for match in pattern.finditer(content):
                index = len(chunks)
                position = match.start()
                image_url = match.group(match.lastindex) if match.lastindex else match.group(0)
                image_type = detect_image_type(match.group(0))
                start = max(0, position - RELATED_TEXT_WINDOW)
                related_text = content[start : position + RELATED_TEXT_WINDOW].strip()

                keywords = extract_keywords(
                    related_text, top_n=5, min_length=3, extra_stopwords=_VISUAL_WORDS
                )
                if image_type not in keywords:
                    keywords.append(image_type)

                chunks.append(
                    Chunk(
                        id=f"{prefix}_image_{index}",
                        content=related_text,
                        chunk_type=ChunkType.IMAGE,
                        keywords=keywords,
                        metadata={
                            **metadata,
                            "image_url": image_url,
                            "image_type": image_type,
                            "position": position,
                            "is_image": True,
                            "image_index": index,
                        },
                    )
                )
        return chunks
