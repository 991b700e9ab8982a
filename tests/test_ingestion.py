"""
Tests for the batch ingestion pipeline.
"""

from unittest.mock import AsyncMock

import pytest

from regrag.errors import EmbeddingError
from regrag.graph import is_valid_chunk_id
from regrag.ingestion.pipeline import (
    IngestionOptions,
    IngestionPipeline,
    assign_chunk_ids,
    chunk_uuid,
)
from regrag.models import Chunk, DocumentInfo


def small_document(doc_id: str) -> DocumentInfo:
    return DocumentInfo(
        doc_id=doc_id,
        title=f"Document {doc_id}",
        body_content=(f"Licensed banks must report liquidity positions monthly under notice {doc_id}.",),
        page_numbers=(1,),
    )


class TestAssignChunkIds:
    def test_ids_and_references_are_remapped(self):
        """Test chunk ids and references are remapped together."""
        parent = Chunk(id="D_parent_1", content="p", metadata={"child_chunk_ids": ["D_child_1"]})
        child = Chunk(id="D_child_1", content="c", metadata={"parent_chunk_id": "D_parent_1"})
        child.link("D_parent_1", 1.0)
        child.link("elsewhere", 0.4)

        assign_chunk_ids("D", [parent, child])

        assert parent.id == chunk_uuid("D", "D_parent_1")
        assert is_valid_chunk_id(child.id)
        assert child.metadata["local_id"] == "D_child_1"
        assert child.metadata["parent_chunk_id"] == parent.id
        assert parent.metadata["child_chunk_ids"] == [child.id]
        assert child.related_chunks == [parent.id, "elsewhere"]
        assert child.relationship_weights == {parent.id: 1.0, "elsewhere": 0.4}

    def test_ids_are_deterministic(self):
        """Test chunk UUIDs are deterministic."""
        assert chunk_uuid("D", "x") == chunk_uuid("D", "x")
        assert chunk_uuid("D", "x") != chunk_uuid("E", "x")


class TestProcessDocument:
    """Single-document ingestion."""

    @pytest.mark.asyncio
    async def test_chunks_are_stored_with_uuid_ids(self, store, embedder, regulatory_document):
        """Test chunks are stored under UUID ids."""
        pipeline = IngestionPipeline(store, embedder)

        result = await pipeline.process_document(regulatory_document)

        assert result.succeeded
        assert result.chunks_processed > 0
        assert result.metadata["chunking"]["total_chunks"] == result.chunks_processed

        stats = await store.get_stats()
        assert stats["documents"] == 1
        assert stats["chunks"] == result.chunks_processed
        assert await pipeline.check_document_exists("CIRC-2024-01")

    @pytest.mark.asyncio
    async def test_stored_chunk_round_trip(self, store, embedder, regulatory_document):
        """Test stored chunks read back unchanged."""
        pipeline = IngestionPipeline(store, embedder)
        await pipeline.process_document(regulatory_document)

        hits = await store.vector_search(await embedder.embed("capital adequacy ratio"), 50, 0.0)
        assert hits
        for hit in hits:
            assert is_valid_chunk_id(hit.chunk_id)
            stored = await store.get_chunk(hit.chunk_id)
            assert stored.content == hit.content
            assert stored.id == chunk_uuid("CIRC-2024-01", stored.metadata["local_id"])
            assert hit.doc_id == "CIRC-2024-01"
            assert stored.keywords == await store.get_keywords_for_chunk(stored.id)

    @pytest.mark.asyncio
    async def test_knowledge_graph_is_built(self, store, embedder, regulatory_document):
        """Test knowledge graph is built during ingestion."""
        result = await IngestionPipeline(store, embedder).process_document(regulatory_document)

        graph = result.metadata["knowledge_graph"]
        assert graph["node_types"]["chunk"] == result.chunks_processed
        assert graph["keywords"] > 0
        assert result.relationships_created == graph["relationships"]
        assert (await store.get_stats())["keywords"] == graph["keywords"]

    @pytest.mark.asyncio
    async def test_knowledge_graph_can_be_disabled(self, store, embedder, regulatory_document):
        """Test knowledge graph toggle."""
        pipeline = IngestionPipeline(store, embedder, options=IngestionOptions(enable_knowledge_graph=False))

        result = await pipeline.process_document(regulatory_document)

        assert result.relationships_created == 0
        assert "knowledge_graph" not in result.metadata
        assert (await store.get_stats())["keywords"] == 0

    @pytest.mark.asyncio
    async def test_reingesting_overwrites_chunks(self, store, embedder, regulatory_document):
        """Test re-ingesting a document overwrites its chunks."""
        pipeline = IngestionPipeline(store, embedder)
        first = await pipeline.process_document(regulatory_document)
        await pipeline.process_document(regulatory_document)

        assert (await store.get_stats())["chunks"] == first.chunks_processed

    @pytest.mark.asyncio
    async def test_embedding_error_is_recorded(self, store, regulatory_document):
        """Embedding failures mark the result failed but chunks are still stored."""
        embedder = AsyncMock()
        embedder.embed.side_effect = EmbeddingError("model unavailable")
        pipeline = IngestionPipeline(store, embedder)

        result = await pipeline.process_document(regulatory_document)

        assert not result.succeeded
        assert any("model unavailable" in e for e in result.errors)
        assert result.chunks_processed > 0
        assert (await store.get_stats())["chunks"] == result.chunks_processed

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded(self, store, regulatory_document):
        """Test unexpected failure is recorded on the result."""
        embedder = AsyncMock()
        embedder.embed.side_effect = RuntimeError("socket closed")

        result = await IngestionPipeline(store, embedder).process_document(regulatory_document)

        assert result.errors == ["socket closed"]
        assert result.chunks_processed == 0

    @pytest.mark.asyncio
    async def test_document_mode_uses_strategy_selector(self, store, embedder, regulatory_document):
        """Test document mode chunks through the strategy selector."""
        pipeline = IngestionPipeline(store, embedder, options=IngestionOptions(chunking_mode="document"))

        result = await pipeline.process_document(regulatory_document)

        assert result.succeeded
        hits = await store.vector_search(await embedder.embed("capital"), 50, 0.0)
        assert hits
        assert all(hit.metadata["doc_id"] == "CIRC-2024-01" for hit in hits)
        assert all((await store.get_chunk(hit.chunk_id)).keywords for hit in hits)

    def test_unknown_chunking_mode(self, store, embedder):
        """Test unknown chunking mode is rejected."""
        with pytest.raises(ValueError, match="Unknown chunking mode"):
            IngestionPipeline(store, embedder, options=IngestionOptions(chunking_mode="fast"))


class TestProcessBatch:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_batch_results_in_order(self, store, embedder, parallel):
        """Test batch results keep document order."""
        options = IngestionOptions(batch_size=2, enable_parallel_processing=parallel)
        pipeline = IngestionPipeline(store, embedder, options=options)
        documents = [small_document(f"DOC-{i}") for i in range(3)]

        results = await pipeline.process_batch(documents)

        assert [r.document_id for r in results] == ["DOC-0", "DOC-1", "DOC-2"]
        assert all(r.succeeded for r in results)
        assert (await store.get_stats())["documents"] == 3

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_siblings(self, store, embedder):
        """Test one failed document does not abort the batch."""
        pipeline = IngestionPipeline(store, embedder)
        pipeline.process_document = AsyncMock(
            side_effect=[
                RuntimeError("boom"),
                await IngestionPipeline(store, embedder).process_document(small_document("DOC-1")),
            ]
        )

        results = await pipeline.process_batch([small_document("DOC-0"), small_document("DOC-1")])

        assert results[0].errors == ["boom"]
        assert results[1].succeeded

    @pytest.mark.asyncio
    async def test_processing_stats(self, store, embedder):
        """Test processing stats."""
        pipeline = IngestionPipeline(store, embedder)
        await pipeline.process_batch([small_document("DOC-0")])

        stats = await pipeline.get_processing_stats()
        assert stats["documents"] == 1
        assert "timestamp" in stats

    @pytest.mark.asyncio
    async def test_processing_stats_on_store_error(self, embedder):
        """Test processing stats when the store fails."""
        store = AsyncMock()
        store.get_stats.side_effect = RuntimeError("store offline")

        stats = await IngestionPipeline(store, embedder).get_processing_stats()

        assert stats["error"] == "store offline"
        assert stats["chunks"] == 0
