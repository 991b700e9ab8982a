"""
Tests for settings and the dependency injection container.
"""

import pytest
from pydantic import ValidationError

from regrag.config.container import Container, get_container, setup_container
from regrag.config.settings import Settings, get_settings
from regrag.core.orchestrator import RAGOrchestrator
from regrag.ingestion.pipeline import IngestionPipeline
from regrag.storage.http import HttpDocumentStore, HttpEmbeddingClient
from regrag.storage.memory import HashingEmbedder, InMemoryDocumentStore


class TestSettings:
    def test_defaults(self):
        """Test default settings."""
        settings = Settings()

        assert settings.environment == "development"
        assert settings.cache.ttl_seconds == 300.0
        assert settings.retrieval.default_limit == 5
        assert settings.store.backend == "memory"
        assert settings.ingestion.chunking_mode == "smart"
        assert not settings.is_production()

    def test_nested_env_overrides(self, monkeypatch):
        """Test nested environment overrides."""
        monkeypatch.setenv("REGRAG_CACHE__TTL_SECONDS", "60")
        monkeypatch.setenv("REGRAG_RETRIEVAL__SIMILARITY_THRESHOLD", "0.5")
        monkeypatch.setenv("REGRAG_ENVIRONMENT", "production")

        settings = get_settings()

        assert settings.cache.ttl_seconds == 60.0
        assert settings.retrieval.similarity_threshold == 0.5
        assert settings.is_production()

    def test_get_settings_is_cached(self):
        """Test settings are cached."""
        assert get_settings() is get_settings()

    @pytest.mark.parametrize(
        "env,value",
        [
            ("REGRAG_ENVIRONMENT", "qa"),
            ("REGRAG_STORE__BACKEND", "redis"),
            ("REGRAG_STORE__BASE_URL", "store.internal"),
            ("REGRAG_EMBEDDINGS__BACKEND", "onnx"),
            ("REGRAG_INGESTION__CHUNKING_MODE", "fast"),
            ("REGRAG_CHUNKING__SMART_STRATEGY", "semantic"),
            ("REGRAG_RETRIEVAL__SIMILARITY_THRESHOLD", "1.5"),
            ("REGRAG_CHUNKING__STANDARD_OVERLAP_PERCENTAGE", "100"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, env, value):
        """Test invalid settings are rejected."""
        monkeypatch.setenv(env, value)
        with pytest.raises(ValidationError):
            Settings()

    def test_base_url_trailing_slash_stripped(self, monkeypatch):
        """Test store base URL is normalized."""
        monkeypatch.setenv("REGRAG_STORE__BASE_URL", "https://store.internal/")
        assert Settings().store.base_url == "https://store.internal"


class TestContainer:
    def test_default_wiring(self):
        """Test default container wiring."""
        container = setup_container(Settings())

        assert isinstance(container.get("store"), InMemoryDocumentStore)
        assert isinstance(container.get("embedder"), HashingEmbedder)
        assert container.get("generator") is None
        assert isinstance(container.get("orchestrator"), RAGOrchestrator)
        assert isinstance(container.get("ingestion_pipeline"), IngestionPipeline)

    def test_services_are_shared(self):
        """Test services are created once and shared."""
        container = setup_container(Settings())

        orchestrator = container.get("orchestrator")
        pipeline = container.get("ingestion_pipeline")

        assert container.get("orchestrator") is orchestrator
        assert pipeline.store is container.get("store")
        assert pipeline.graph_builder.store is container.get("store")

    def test_cache_manager_shared_with_vector_search(self):
        """Test the orchestrator and vector search use the same cache manager."""
        container = setup_container(Settings())

        orchestrator = container.get("orchestrator")
        vector = orchestrator.strategy_factory.create_strategy("vector")

        assert vector.cache_manager is orchestrator.cache_manager
        assert vector.cache_manager is container.get("cache_manager")

    def test_settings_flow_into_services(self, monkeypatch):
        """Test settings reach the wired services."""
        monkeypatch.setenv("REGRAG_EMBEDDINGS__DIMENSIONS", "64")
        monkeypatch.setenv("REGRAG_CACHE__MAX_SIZE", "10")
        monkeypatch.setenv("REGRAG_KNOWLEDGE_GRAPH__MIN_RELATIONSHIP_WEIGHT", "0.6")
        monkeypatch.setenv("REGRAG_INGESTION__CHUNKING_MODE", "document")
        container = setup_container(Settings())

        assert container.get("embedder").dimensions == 64
        assert container.get("cache_manager").query_cache.max_size == 10
        assert container.get("graph_builder").options.min_relationship_weight == 0.6
        assert container.get("ingestion_pipeline").options.chunking_mode == "document"

    def test_http_backends(self, monkeypatch):
        """Test HTTP backends are selected from settings."""
        monkeypatch.setenv("REGRAG_STORE__BACKEND", "http")
        monkeypatch.setenv("REGRAG_EMBEDDINGS__BACKEND", "http")
        container = setup_container(Settings())

        assert isinstance(container.get("store"), HttpDocumentStore)
        assert isinstance(container.get("embedder"), HttpEmbeddingClient)

    def test_unknown_service_returns_default(self):
        """Test unknown service lookup returns the default."""
        container = Container(Settings())
        assert container.get("missing") is None
        assert container.get("missing", "fallback") == "fallback"

    def test_singleton_overrides_factory(self):
        """Test registered singleton wins over a factory."""
        container = setup_container(Settings())
        store = InMemoryDocumentStore()
        container.register_singleton("store", store)

        assert container.get("store") is store

    @pytest.mark.asyncio
    async def test_cleanup_closes_services(self, monkeypatch):
        """Test lifespan cleanup closes HTTP clients."""
        monkeypatch.setenv("REGRAG_STORE__BACKEND", "http")
        container = setup_container(Settings())
        store = container.get("store")

        async with container.lifespan():
            pass

        assert store._http._client.is_closed
        # Services are rebuilt after cleanup
        assert container.get("store") is not store

    def test_get_container_is_cached(self):
        """Test container is cached."""
        assert get_container() is get_container()
