"""
Batch ingestion: chunk, embed, store and graph regulatory documents.

Chunk ids produced by the chunkers are local to a document. Before storage
they are replaced by UUID5 ids derived from ``(doc_id, local id)`` so that
re-ingesting a document overwrites its chunks and the graph builder accepts
them as valid node ids.
"""

import asyncio
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..chunking.selector import ChunkingStrategySelector
from ..chunking.smart import SmartChunker, SmartChunkingOptions
from ..chunking.text import extract_keywords, summarize
from ..errors import EmbeddingError
from ..graph.builder import KnowledgeGraphBuilder, KnowledgeGraphOptions
from ..models import Chunk, DocumentInfo
from ..observability.logging import get_logger
from ..observability.probe import probe
from ..storage.base import DocumentStore, EmbeddingOracle

logger = get_logger(__name__)

CHUNK_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "regrag/chunks")
CHUNKING_MODES = ("smart", "document")
_ID_METADATA_KEYS = ("parent_chunk_id", "child_chunk_ids", "original_chunks")


def chunk_uuid(doc_id: str, local_id: str) -> str:
    return str(uuid.uuid5(CHUNK_NAMESPACE, f"{doc_id}:{local_id}"))


def assign_chunk_ids(doc_id: str, chunks: list[Chunk]) -> list[Chunk]:
    """Replace local chunk ids with deterministic UUIDs, remapping every reference."""
    mapping = {chunk.id: chunk_uuid(doc_id, chunk.id) for chunk in chunks}

    def remap(value: str) -> str:
        return mapping.get(value, value)

    for chunk in chunks:
        chunk.metadata["local_id"] = chunk.id
        chunk.id = mapping[chunk.id]
        chunk.related_chunks = [remap(r) for r in chunk.related_chunks]
        chunk.relationship_weights = {remap(k): w for k, w in chunk.relationship_weights.items()}
        for key in _ID_METADATA_KEYS:
            value = chunk.metadata.get(key)
            if isinstance(value, str):
                chunk.metadata[key] = remap(value)
            elif isinstance(value, list):
                chunk.metadata[key] = [remap(v) for v in value]
    return chunks


@dataclass
class IngestionOptions:
    chunking_mode: str = "smart"
    chunking: SmartChunkingOptions = field(default_factory=SmartChunkingOptions)
    knowledge_graph: KnowledgeGraphOptions = field(default_factory=KnowledgeGraphOptions)
    enable_knowledge_graph: bool = True
    use_context_extension_for_embedding: bool = True
    batch_size: int = 10
    enable_parallel_processing: bool = True


@dataclass
class IngestionResult:
    document_id: str
    chunks_processed: int = 0
    keywords_extracted: int = 0
    relationships_created: int = 0
    processing_time_ms: float = 0.0
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.errors


class IngestionPipeline:
    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingOracle,
        chunker: SmartChunker | None = None,
        selector: ChunkingStrategySelector | None = None,
        graph_builder: KnowledgeGraphBuilder | None = None,
        options: IngestionOptions | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or SmartChunker()
        self.selector = selector or ChunkingStrategySelector()
        self.graph_builder = graph_builder or KnowledgeGraphBuilder(store)
        self.options = options or IngestionOptions()
        if self.options.chunking_mode not in CHUNKING_MODES:
            raise ValueError(f"Unknown chunking mode '{self.options.chunking_mode}'")
        self._semaphore = asyncio.Semaphore(self.options.batch_size)

    async def process_document(self, document: DocumentInfo) -> IngestionResult:
        """Ingest one document. Failures are recorded on the result, never raised."""
        start = time.perf_counter()
        result = IngestionResult(document_id=document.doc_id)
        options = self.options

        try:
            with probe("ingestion.process_document", doc_id=document.doc_id):
                content = document.full_text
                chunks = await self._chunk(document)
                assign_chunk_ids(document.doc_id, chunks)
                result.metadata["chunking"] = {
                    "total_chunks": len(chunks),
                    "chunk_types": sorted({c.chunk_type.value for c in chunks}),
                    "average_chunk_size": (
                        sum(len(c.content) for c in chunks) / len(chunks) if chunks else 0.0
                    ),
                }

                embeddings = await self._embed_chunks(chunks, result)
                document_embedding = await self._embed(content, f"document {document.doc_id}", result)

                await self.store.upsert_document(
                    document,
                    embedding=document_embedding,
                    keywords=list(dict.fromkeys(k for c in chunks for k in c.keywords)),
                    topics=list(
                        dict.fromkeys(c.metadata["topic"] for c in chunks if c.metadata.get("topic"))
                    ),
                    summary=summarize(content),
                )
                for chunk, embedding in zip(chunks, embeddings):
                    await self.store.upsert_chunk(document.doc_id, chunk, embedding)

                result.chunks_processed = len(chunks)
                result.keywords_extracted = sum(len(c.keywords) for c in chunks)

                if options.enable_knowledge_graph and chunks:
                    graph = await self.graph_builder.build_knowledge_graph(chunks, options.knowledge_graph)
                    result.relationships_created = len(graph.relationships)
                    result.metadata["knowledge_graph"] = {
                        "nodes": len(graph.nodes),
                        "relationships": len(graph.relationships),
                        "keywords": len(graph.keywords),
                        "node_types": dict(Counter(n.node_type.value for n in graph.nodes)),
                    }
        except Exception as e:
            logger.error(f"Ingestion failed for {document.doc_id}: {e}", error_type=type(e).__name__)
            result.errors.append(str(e))

        result.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.timed(
            f"Ingested document {document.doc_id}",
            result.processing_time_ms,
            chunks=result.chunks_processed,
            relationships=result.relationships_created,
            errors=len(result.errors),
        )
        return result

    async def _chunk(self, document: DocumentInfo) -> list[Chunk]:
        if self.options.chunking_mode == "document":
            chunks = await self.selector.chunk_document(document)
            for chunk in chunks:
                if not chunk.keywords:
                    chunk.keywords = extract_keywords(chunk.content)
            return chunks
        return self.chunker.chunk_document(
            document.full_text, document.to_metadata(), self.options.chunking, prefix=document.doc_id
        )

    async def _embed(self, text: str, label: str, result: IngestionResult) -> list[float] | None:
        try:
            return await self.embedder.embed(text)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed for {label}: {e}")
            result.errors.append(f"embedding failed for {label}: {e}")
            return None

    async def _embed_chunks(
        self, chunks: list[Chunk], result: IngestionResult
    ) -> list[list[float] | None]:
        embeddings = []
        for chunk in chunks:
            text = chunk.content
            if self.options.use_context_extension_for_embedding and chunk.context_extension:
                text = chunk.context_extension
            label = f"chunk {chunk.metadata.get('local_id', chunk.id)}"
            embeddings.append(await self._embed(text, label, result))
        return embeddings

    async def _process_with_semaphore(self, document: DocumentInfo) -> IngestionResult:
        async with self._semaphore:
            return await self.process_document(document)

    async def process_batch(self, documents: list[DocumentInfo]) -> list[IngestionResult]:
        """Ingest documents in slices of ``batch_size``; one failure never aborts its siblings."""
        results: list[IngestionResult] = []
        batch_size = self.options.batch_size
        total_batches = (len(documents) + batch_size - 1) // batch_size

        for i in range(0, len(documents), batch_size):
            batch = documents[i : i + batch_size]
            logger.info(f"Processing batch {i // batch_size + 1}/{total_batches}", size=len(batch))

            if self.options.enable_parallel_processing:
                outcomes = await asyncio.gather(
                    *(self._process_with_semaphore(doc) for doc in batch), return_exceptions=True
                )
                for doc, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"Failed to process {doc.doc_id}: {outcome}")
                        outcome = IngestionResult(document_id=doc.doc_id, errors=[str(outcome)])
                    results.append(outcome)
            else:
                for doc in batch:
                    results.append(await self.process_document(doc))

        failed = sum(1 for r in results if not r.succeeded)
        logger.info(f"Batch ingestion finished: {len(results) - failed}/{len(results)} succeeded")
        return results

    async def check_document_exists(self, document_id: str) -> bool:
        return await self.store.document_exists(document_id)

    async def get_processing_stats(self) -> dict[str, Any]:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            stats = await self.store.get_stats()
        except Exception as e:
            logger.error(f"Error getting processing stats: {e}")
            return {
                "chunks": 0,
                "keywords": 0,
                "relationships": 0,
                "concepts": 0,
                "error": str(e),
                "timestamp": timestamp,
            }
        return {**stats, "timestamp": timestamp}
