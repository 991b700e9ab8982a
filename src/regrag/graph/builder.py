"""
Knowledge graph construction over chunk keywords.

The write path turns a chunk set into chunk, keyword and concept nodes plus
weighted chunk-to-chunk edges, and persists keywords, edges and concept
associations through the document store. The read path resolves free text to
stored chunk nodes, the edges among them, and short paths through those edges.
"""

import re
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any

from ..chunking.text import jaccard, word_set
from ..models import Chunk, KnowledgeGraphNode, KnowledgeGraphRelationship, NodeType
from ..observability.logging import get_logger
from ..observability.probe import probe
from ..storage.base import DocumentStore

logger = get_logger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

# Concept -> substrings; a keyword belongs to a concept when it contains one of them
CONCEPT_GROUPS: dict[str, list[str]] = {
    "regulation": ["regulation", "regulatory", "compliance", "legal", "law", "policy"],
    "finance": ["financial", "finance", "economic", "monetary", "banking", "investment"],
    "reporting": ["report", "reporting", "documentation", "records", "data", "information"],
    "analysis": ["analysis", "analytical", "assessment", "evaluation", "review", "study"],
    "management": ["management", "administrative", "operational", "procedural", "organizational"],
}

SEMANTIC_SIMILARITY = "semantic_similarity"
MAX_PATH_HOPS = 2


def is_valid_chunk_id(chunk_id: str) -> bool:
    return bool(UUID_PATTERN.match(chunk_id))


def concept_for_keyword(keyword: str) -> str | None:
    lowered = keyword.lower()
    for concept, terms in CONCEPT_GROUPS.items():
        if any(term in lowered for term in terms):
            return concept
    return None


@dataclass
class KnowledgeGraphOptions:
    enable_concept_mapping: bool = True
    enable_relationship_scoring: bool = True
    enable_co_occurrence_analysis: bool = True
    min_relationship_weight: float = 0.3
    max_concepts_per_node: int = 5


@dataclass
class KeywordStats:
    frequency: dict[str, int]
    weights: dict[str, float]
    concept_map: dict[str, str]
    co_occurrence: dict[str, Counter] = field(default_factory=dict)

    @property
    def keywords(self) -> list[str]:
        return list(self.frequency)


@dataclass
class KnowledgeGraphResult:
    nodes: list[KnowledgeGraphNode]
    relationships: list[KnowledgeGraphRelationship]
    keywords: list[str]


@dataclass
class KnowledgeGraphQueryResult:
    nodes: list[KnowledgeGraphNode]
    relationships: list[KnowledgeGraphRelationship]
    paths: list[list[str]]


class KnowledgeGraphBuilder:
    """Builds and queries the chunk keyword graph."""

    def __init__(self, store: DocumentStore, options: KnowledgeGraphOptions | None = None):
        self.store = store
        self.options = options or KnowledgeGraphOptions()

    async def build_knowledge_graph(
        self, chunks: list[Chunk], options: KnowledgeGraphOptions | None = None
    ) -> KnowledgeGraphResult:
        options = options or self.options
        start = time.perf_counter()

        with probe("graph.build", chunks=len(chunks)):
            stats = self._keyword_stats(chunks, options)
            nodes = self._build_nodes(chunks, stats, options)
            relationships = (
                self._build_relationships(chunks, options)
                if options.enable_relationship_scoring
                else []
            )
            await self._persist(stats, relationships, nodes)

        logger.timed(
            "Built knowledge graph",
            (time.perf_counter() - start) * 1000,
            nodes=len(nodes),
            relationships=len(relationships),
            keywords=len(stats.frequency),
        )
        return KnowledgeGraphResult(nodes=nodes, relationships=relationships, keywords=stats.keywords)

    def _keyword_stats(self, chunks: list[Chunk], options: KnowledgeGraphOptions) -> KeywordStats:
        frequency: Counter = Counter()
        co_occurrence: dict[str, Counter] = defaultdict(Counter)
        for chunk in chunks:
            unique = list(dict.fromkeys(chunk.keywords))
            frequency.update(unique)
            if options.enable_co_occurrence_analysis:
                for a, b in combinations(unique, 2):
                    co_occurrence[a][b] += 1
                    co_occurrence[b][a] += 1

        max_freq = max(frequency.values(), default=0)
        weights = {k: n / max_freq for k, n in frequency.items()} if max_freq else {}

        concept_map: dict[str, str] = {}
        if options.enable_concept_mapping:
            for keyword in frequency:
                concept = concept_for_keyword(keyword)
                if concept:
                    concept_map[keyword] = concept

        return KeywordStats(
            frequency=dict(frequency),
            weights=weights,
            concept_map=concept_map,
            co_occurrence=dict(co_occurrence),
        )

    def _build_nodes(
        self, chunks: list[Chunk], stats: KeywordStats, options: KnowledgeGraphOptions
    ) -> list[KnowledgeGraphNode]:
        nodes = [
            KnowledgeGraphNode(
                id=chunk.id,
                node_type=NodeType.CHUNK,
                content=chunk.content,
                keywords=list(chunk.keywords),
                metadata={"chunk_type": chunk.chunk_type.value, **chunk.metadata},
            )
            for chunk in chunks
        ]

        for keyword in stats.keywords:
            metadata: dict[str, Any] = {
                "weight": stats.weights[keyword],
                "frequency": stats.frequency[keyword],
                "concept": stats.concept_map.get(keyword, keyword),
            }
            if keyword in stats.co_occurrence:
                metadata["co_occurs_with"] = [k for k, _ in stats.co_occurrence[keyword].most_common(5)]
            nodes.append(
                KnowledgeGraphNode(
                    id=f"keyword_{keyword}",
                    node_type=NodeType.KEYWORD,
                    content=keyword,
                    keywords=[keyword],
                    metadata=metadata,
                )
            )

        for concept in dict.fromkeys(stats.concept_map.values()):
            related = [k for k, c in stats.concept_map.items() if c == concept]
            nodes.append(
                KnowledgeGraphNode(
                    id=f"concept_{concept}",
                    node_type=NodeType.CONCEPT,
                    content=concept,
                    keywords=[concept],
                    metadata={
                        "concept_type": "high_level",
                        "related_keywords": related[: options.max_concepts_per_node],
                    },
                )
            )
        return nodes

    def _build_relationships(
        self, chunks: list[Chunk], options: KnowledgeGraphOptions
    ) -> list[KnowledgeGraphRelationship]:
        """Edges between every pair of UUID-identified chunks that clear the minimum weight."""
        valid = [c for c in chunks if is_valid_chunk_id(c.id)]
        skipped = len(chunks) - len(valid)
        if skipped:
            logger.debug(f"Skipping {skipped} chunks without UUID ids for edge building")

        word_sets = {c.id: word_set(c.content) for c in valid}
        relationships = []
        for source, target in combinations(valid, 2):
            keyword_overlap = jaccard(source.keywords, target.keywords)
            content_overlap = jaccard(word_sets[source.id], word_sets[target.id])
            weight = (keyword_overlap + content_overlap) / 2
            if weight >= options.min_relationship_weight:
                relationships.append(
                    KnowledgeGraphRelationship(
                        source_id=source.id,
                        target_id=target.id,
                        relationship_type=SEMANTIC_SIMILARITY,
                        weight=weight,
                        metadata={
                            "relationship_type": "chunk_to_chunk",
                            "keyword_overlap": keyword_overlap,
                            "content_overlap": content_overlap,
                        },
                    )
                )
        return relationships

    async def _persist(
        self,
        stats: KeywordStats,
        relationships: list[KnowledgeGraphRelationship],
        nodes: list[KnowledgeGraphNode],
    ) -> None:
        for keyword in stats.keywords:
            await self.store.upsert_keyword(
                keyword,
                stats.weights[keyword],
                stats.frequency[keyword],
                stats.concept_map.get(keyword),
            )
        for relationship in relationships:
            await self.store.upsert_relationship(relationship)
        for node in nodes:
            if node.node_type is NodeType.CONCEPT:
                await self.store.upsert_concept(node.content, node.metadata["related_keywords"])

    async def query_knowledge_graph(
        self,
        query: str,
        max_results: int = 10,
        min_weight: float = 0.3,
        include_concepts: bool = True,
    ) -> KnowledgeGraphQueryResult:
        """
        Resolve free text to stored chunk nodes, edges among them and short paths.

        At most ``max_results`` chunk nodes are returned and every returned
        edge has weight >= ``min_weight``.
        """
        keywords = list(dict.fromkeys(w for w in re.sub(r"[^\w\s]", "", query.lower()).split() if len(w) > 3))
        if not keywords:
            return KnowledgeGraphQueryResult(nodes=[], relationships=[], paths=[])

        with probe("graph.query", keywords=len(keywords)):
            chunks = await self.store.find_chunks_by_keywords(keywords, max_results)
            chunks = chunks[:max_results]
            nodes = [
                KnowledgeGraphNode(
                    id=c.id,
                    node_type=NodeType.CHUNK,
                    content=c.content,
                    keywords=list(c.keywords),
                    metadata=dict(c.metadata),
                )
                for c in chunks
            ]
            node_ids = [n.id for n in nodes]
            relationships = [
                r for r in await self.store.get_relationships(node_ids, min_weight) if r.weight >= min_weight
            ]

        if include_concepts:
            for concept in dict.fromkeys(filter(None, (concept_for_keyword(k) for k in keywords))):
                nodes.append(
                    KnowledgeGraphNode(
                        id=f"concept_{concept}",
                        node_type=NodeType.CONCEPT,
                        content=concept,
                        keywords=[concept],
                        metadata={"concept_type": "high_level"},
                    )
                )

        return KnowledgeGraphQueryResult(
            nodes=nodes, relationships=relationships, paths=find_paths(node_ids, relationships)
        )


def find_paths(
    node_ids: list[str], relationships: list[KnowledgeGraphRelationship], max_hops: int = MAX_PATH_HOPS
) -> list[list[str]]:
    """Simple paths of 1..max_hops edges between the given nodes, found breadth-first."""
    adjacency: dict[str, list[str]] = defaultdict(list)
    for r in relationships:
        adjacency[r.source_id].append(r.target_id)
        adjacency[r.target_id].append(r.source_id)

    wanted = set(node_ids)
    paths: list[list[str]] = []
    for start in node_ids:
        queue = deque([[start]])
        while queue:
            path = queue.popleft()
            if len(path) - 1 >= max_hops:
                continue
            for neighbour in adjacency[path[-1]]:
                if neighbour in path:
                    continue
                extended = path + [neighbour]
                if neighbour in wanted and start < neighbour:
                    paths.append(extended)
                queue.append(extended)
    return paths
