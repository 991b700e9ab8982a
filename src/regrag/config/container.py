"""
Dependency injection container for the RAG services.

Services are created lazily from registered factories and cached. Anything
exposing an async ``close()`` (HTTP store, embedding and generation clients)
is closed on ``cleanup()``.
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any

from ..observability.logging import get_logger
from .settings import Settings, get_settings

logger = get_logger(__name__)

ServiceFactory = Callable[["Container"], Any]


class Container:
    """Lazy service registry bound to one Settings instance."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._factories: dict[str, ServiceFactory] = {}
        self._singletons: dict[str, Any] = {}
        self._services: dict[str, Any] = {}

    def register_factory(self, name: str, factory: ServiceFactory) -> None:
        """Register how to build ``name`` on first use."""
        self._factories[name] = factory

    def register_singleton(self, name: str, instance: Any) -> None:
        """Pin a ready-made instance; it wins over any factory."""
        self._singletons[name] = instance

    def get(self, name: str, default: Any = None) -> Any:
        """Return the service called ``name``, building it if needed."""
        for registry in (self._singletons, self._services):
            if name in registry:
                return registry[name]

        factory = self._factories.get(name)
        if factory is None:
            return default

        service = self._services[name] = factory(self)
        return service

    async def cleanup(self) -> None:
        """Close every live service that has a ``close()`` and forget built ones."""
        live = {**self._services, **self._singletons}
        for name, service in live.items():
            close = getattr(service, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")
        self._services.clear()

    @asynccontextmanager
    async def lifespan(self):
        """Yield the container and clean it up on exit."""
        try:
            yield self
        finally:
            await self.cleanup()


def setup_container(settings: Settings | None = None) -> Container:
    """Build a container with every RAG service factory registered."""
    container = Container(settings)

    def _store_factory(c: Container):
        store = c.settings.store
        if store.backend == "http":
            from ..storage.http import HttpDocumentStore

            return HttpDocumentStore(store.base_url, api_key=store.api_key, timeout=store.timeout)

        from ..storage.memory import InMemoryDocumentStore

        return InMemoryDocumentStore()

    def _embedder_factory(c: Container):
        emb = c.settings.embeddings
        if emb.backend == "http":
            from ..storage.http import HttpEmbeddingClient

            return HttpEmbeddingClient(emb.base_url, emb.model, api_key=emb.api_key, timeout=emb.timeout)

        from ..storage.memory import HashingEmbedder

        return HashingEmbedder(emb.dimensions)

    def _generator_factory(c: Container):
        gen = c.settings.generator
        if not gen.enabled:
            return None
        from ..storage.http import HttpTextGenerator

        return HttpTextGenerator(gen.base_url, gen.model, api_key=gen.api_key, timeout=gen.timeout)

    def _cache_factory(c: Container):
        from ..core.cache import CacheManager

        return CacheManager(c.settings.cache.ttl_seconds, c.settings.cache.max_size)

    def _performance_factory(c: Container):
        from ..core.performance import PerformanceMonitor

        return PerformanceMonitor(c.settings.performance.max_metrics)

    def _audit_factory(c: Container):
        from ..core.audit import AuditTrailManager

        return AuditTrailManager(c.settings.audit.log_path, c.settings.audit.user_id)

    def _query_processor_factory(c: Container):
        from ..processing.processor import create_advanced_processor

        return create_advanced_processor()

    def _strategy_factory_factory(c: Container):
        from ..retrieval.factory import RetrievalStrategyFactory

        retrieval = c.settings.retrieval
        return RetrievalStrategyFactory(
            c.get("store"),
            c.get("embedder"),
            similarity_threshold=retrieval.similarity_threshold,
            min_content_length=retrieval.min_content_length,
            max_context_tokens=retrieval.max_context_tokens,
            cache_manager=c.get("cache_manager"),
        )

    def _orchestrator_factory(c: Container):
        from ..core.orchestrator import RAGOrchestrator

        return RAGOrchestrator(
            query_processor=c.get("query_processor"),
            strategy_factory=c.get("strategy_factory"),
            performance_monitor=c.get("performance_monitor"),
            cache_manager=c.get("cache_manager"),
            audit_trail=c.get("audit_trail"),
        )

    def _graph_builder_factory(c: Container):
        from ..graph.builder import KnowledgeGraphBuilder, KnowledgeGraphOptions

        kg = c.settings.knowledge_graph
        return KnowledgeGraphBuilder(
            c.get("store"),
            KnowledgeGraphOptions(
                enable_concept_mapping=kg.enable_concept_mapping,
                enable_relationship_scoring=kg.enable_relationship_scoring,
                enable_co_occurrence_analysis=kg.enable_co_occurrence_analysis,
                min_relationship_weight=kg.min_relationship_weight,
                max_concepts_per_node=kg.max_concepts_per_node,
            ),
        )

    def _smart_chunker_factory(c: Container):
        from ..chunking.contextual import ContextualChunker
        from ..chunking.smart import SmartChunker

        ch = c.settings.chunking
        return SmartChunker(
            contextual=ContextualChunker(ch.contextual_chunk_size, ch.contextual_overlap, ch.context_window)
        )

    def _chunking_selector_factory(c: Container):
        from ..chunking.hierarchical import HierarchicalChunker
        from ..chunking.selector import ChunkingStrategySelector
        from ..chunking.standard import StandardChunker

        ch = c.settings.chunking
        return ChunkingStrategySelector(
            llm_available=ch.llm_available,
            generator=c.get("generator"),
            standard=StandardChunker(ch.standard_max_tokens, ch.standard_overlap_percentage),
            hierarchical=HierarchicalChunker(
                ch.parent_chunk_size, ch.child_chunk_size, ch.hierarchical_overlap_tokens
            ),
            semantic_max_tokens=ch.semantic_max_tokens,
        )

    def _ingestion_factory(c: Container):
        from ..chunking.smart import SmartChunkingOptions
        from ..ingestion.pipeline import IngestionOptions, IngestionPipeline

        ing = c.settings.ingestion
        builder = c.get("graph_builder")
        return IngestionPipeline(
            store=c.get("store"),
            embedder=c.get("embedder"),
            chunker=c.get("smart_chunker"),
            selector=c.get("chunking_selector"),
            graph_builder=builder,
            options=IngestionOptions(
                chunking_mode=ing.chunking_mode,
                chunking=SmartChunkingOptions(
                    chunking_strategy=c.settings.chunking.smart_strategy,
                    context_extension_size=c.settings.chunking.context_window,
                ),
                knowledge_graph=builder.options,
                enable_knowledge_graph=ing.enable_knowledge_graph,
                use_context_extension_for_embedding=ing.use_context_extension_for_embedding,
                batch_size=ing.batch_size,
                enable_parallel_processing=ing.enable_parallel_processing,
            ),
        )

    container.register_factory("store", _store_factory)
    container.register_factory("embedder", _embedder_factory)
    container.register_factory("generator", _generator_factory)
    container.register_factory("cache_manager", _cache_factory)
    container.register_factory("performance_monitor", _performance_factory)
    container.register_factory("audit_trail", _audit_factory)
    container.register_factory("query_processor", _query_processor_factory)
    container.register_factory("strategy_factory", _strategy_factory_factory)
    container.register_factory("orchestrator", _orchestrator_factory)
    container.register_factory("graph_builder", _graph_builder_factory)
    container.register_factory("smart_chunker", _smart_chunker_factory)
    container.register_factory("chunking_selector", _chunking_selector_factory)
    container.register_factory("ingestion_pipeline", _ingestion_factory)

    return container


@lru_cache
def get_container() -> Container:
    """Process-wide container built from the cached settings."""
    return setup_container()
