"""
Section-aware chunking: one parent chunk per section plus token-packed children.
"""

import re
from collections import defaultdict
from dataclasses import dataclass

from ..models import Chunk, DocumentInfo
from ..observability.logging import get_logger
from .base import ChunkingOptions, ChunkingStrategy, pack_sentences
from .features import has_structured_content
from .text import estimate_tokens

logger = get_logger(__name__)

_CHAPTER = re.compile(r"^Chapter\s+(\d+)", re.IGNORECASE)
_NUMBERED = re.compile(r"^(\d+\.\d+\.\d+\.\d+|\d+\.\d+\.\d+|\d+\.\d+|\d+\.)\s+(.+)$")

SIBLING_WEIGHT = 0.5
PARENT_WEIGHT = 1.0


@dataclass
class Section:
    title: str
    content: str
    level: int
    number: str | None = None

    @property
    def section_type(self) -> str:
        if self.level == 1:
            return "chapter"
        if self.level == 2:
            return "section"
        return "subsection"

    @property
    def structural_parent(self) -> str | None:
        """Parent number: "6.1.2" -> "6.1". Top-level numbers have none."""
        if not self.number:
            return None
        parts = [p for p in self.number.split(".") if p]
        if len(parts) < 2:
            return None
        return ".".join(parts[:-1])


def parse_sections(text: str) -> list[Section]:
    """Split text into sections at chapter and numbered headings."""
    sections: list[Section] = []
    current = Section(title="Introduction", content="", level=0)

    for line in text.split("\n"):
        stripped = line.strip()
        chapter = _CHAPTER.match(stripped)
        numbered = None if chapter else _NUMBERED.match(stripped)

        if chapter or numbered:
            if current.content.strip():
                sections.append(current)
            if chapter:
                current = Section(
                    title=f"Chapter {chapter.group(1)}",
                    content=stripped + "\n",
                    level=1,
                    number=chapter.group(1),
                )
            else:
                number = numbered.group(1)
                current = Section(
                    title=numbered.group(2),
                    content=stripped + "\n",
                    level=number.count("."),
                    number=number.rstrip("."),
                )
        else:
            current.content += line + "\n"

    if current.content.strip():
        sections.append(current)
    return sections


class HierarchicalChunker(ChunkingStrategy):
    """
    Parent/child chunking for structured documents.

    Each section yields a parent chunk ``{doc}_parent_{n}`` with its full text
    and children ``{doc}_child_{m}`` packed to ``child_chunk_size`` tokens.
    Parents list their children in ``child_chunk_ids``; children point back via
    ``parent_chunk_id``. Children whose sections share a structural parent
    number (6.1.1 and 6.1.2 under 6.1) are linked as siblings, as are children
    of the same section.
    """

    name = "hierarchical_chunking"

    def __init__(self, parent_chunk_size: int = 2000, child_chunk_size: int = 500, overlap_tokens: int = 50):
        self.parent_chunk_size = parent_chunk_size
        self.child_chunk_size = child_chunk_size
        self.overlap_tokens = overlap_tokens

    def is_applicable(self, document: DocumentInfo) -> bool:
        return has_structured_content(" ".join(document.body_content))

    async def chunk(
        self, document: DocumentInfo, options: ChunkingOptions | None = None
    ) -> list[Chunk]:
        options = options or ChunkingOptions()
        parent_size = options.parent_chunk_size or self.parent_chunk_size
        child_size = options.child_chunk_size or self.child_chunk_size
        overlap = self.overlap_tokens if options.overlap_tokens is None else options.overlap_tokens

        sections = parse_sections(document.full_text)
        parents: list[Chunk] = []
        children: list[Chunk] = []
        # structural parent number -> child ids, and section index -> child ids
        by_structural_parent: dict[str, list[str]] = defaultdict(list)
        by_section: dict[int, list[str]] = defaultdict(list)
        child_index = 1

        for section_index, section in enumerate(sections, start=1):
            parent_id = f"{document.doc_id}_parent_{section_index}"
            parent = self._make_chunk(
                document,
                parent_id,
                section.content.strip(),
                section.section_type,
                section_title=section.title,
                section_number=section.number,
                level=section.level,
                hierarchy_role="parent",
                child_chunk_ids=[],
                exceeds_parent_size=estimate_tokens(section.content) > parent_size,
            )
            parents.append(parent)

            for piece in pack_sentences(section.content, child_size, overlap):
                child_id = f"{document.doc_id}_child_{child_index}"
                child_index += 1
                child = self._make_chunk(
                    document,
                    child_id,
                    piece,
                    section.section_type,
                    section_title=section.title,
                    section_number=section.number,
                    level=section.level,
                    hierarchy_role="child",
                    parent_chunk_id=parent_id,
                )
                child.link(parent_id, PARENT_WEIGHT)
                parent.metadata["child_chunk_ids"].append(child_id)
                parent.link(child_id, PARENT_WEIGHT)
                children.append(child)

                by_section[section_index].append(child_id)
                if section.structural_parent:
                    by_structural_parent[section.structural_parent].append(child_id)

        self._link_siblings(children, list(by_section.values()) + list(by_structural_parent.values()))

        logger.info(
            f"Created {len(parents)} parent chunks and {len(children)} child chunks",
            doc_id=document.doc_id,
        )
        return parents + children

    @staticmethod
    def _link_siblings(children: list[Chunk], groups: list[list[str]]) -> None:
        lookup = {c.id: c for c in children}
        for group in groups:
            for chunk_id in group:
                chunk = lookup[chunk_id]
                for sibling_id in group:
                    if sibling_id != chunk_id and sibling_id not in chunk.relationship_weights:
                        chunk.link(sibling_id, SIBLING_WEIGHT)
