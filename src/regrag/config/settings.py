"""
Configuration for the RAG core with Pydantic Settings.

Every section can be overridden from the environment with the ``REGRAG_``
prefix and ``__`` as the nesting delimiter, e.g. ``REGRAG_CACHE__TTL_SECONDS=60``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingConfig(BaseModel):
    """Chunking defaults."""

    standard_max_tokens: int = Field(300, gt=0)
    standard_overlap_percentage: int = Field(10, ge=0, lt=100)
    parent_chunk_size: int = Field(2000, gt=0)
    child_chunk_size: int = Field(500, gt=0)
    hierarchical_overlap_tokens: int = Field(50, ge=0)
    semantic_max_tokens: int = Field(1000, gt=0)
    contextual_chunk_size: int = Field(2000, gt=0)
    contextual_overlap: int = Field(200, ge=0)
    context_window: int = Field(500, ge=0)
    smart_strategy: str = Field("smart")
    llm_available: bool = Field(False)

    @field_validator("smart_strategy")
    @classmethod
    def validate_smart_strategy(cls, v: str) -> str:
        allowed = {"smart", "question_answer", "topic_based", "contextual"}
        if v not in allowed:
            raise ValueError(f"smart_strategy must be one of {sorted(allowed)}")
        return v


class KnowledgeGraphConfig(BaseModel):
    enable_concept_mapping: bool = Field(True)
    enable_relationship_scoring: bool = Field(True)
    enable_co_occurrence_analysis: bool = Field(True)
    min_relationship_weight: float = Field(0.3, ge=0.0, le=1.0)
    max_concepts_per_node: int = Field(5, gt=0)


class RetrievalConfig(BaseModel):
    """Retrieval defaults shared by all strategies."""

    default_limit: int = Field(5, gt=0)
    similarity_threshold: float = Field(0.3, ge=0.0, le=1.0)
    min_content_length: int = Field(50, ge=0)
    max_context_tokens: int = Field(4000, gt=0)


class CacheConfig(BaseModel):
    ttl_seconds: float = Field(300.0, gt=0)
    max_size: int = Field(1000, gt=0)


class PerformanceConfig(BaseModel):
    max_metrics: int = Field(1000, gt=0)
    retention_hours: float = Field(24.0, gt=0)


class AuditConfig(BaseModel):
    """Audit trail settings. ``log_path`` enables the JSONL durable log."""

    log_path: Path | None = Field(None)
    user_id: str | None = Field(None)


class StoreConfig(BaseModel):
    """Document/vector/graph store endpoint."""

    backend: str = Field("memory", description="memory or http")
    base_url: str = Field("http://localhost:8080")
    api_key: str | None = Field(None)
    timeout: float = Field(30.0, gt=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in {"memory", "http"}:
            raise ValueError("backend must be 'memory' or 'http'")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


class EmbeddingConfig(BaseModel):
    backend: str = Field("hashing", description="hashing or http")
    base_url: str = Field("http://localhost:8081")
    api_key: str | None = Field(None)
    model: str = Field("text-embedding-3-small")
    dimensions: int = Field(384, gt=0)
    timeout: float = Field(30.0, gt=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in {"hashing", "http"}:
            raise ValueError("backend must be 'hashing' or 'http'")
        return v


class GeneratorConfig(BaseModel):
    """Optional LLM used for proposition-based chunking."""

    enabled: bool = Field(False)
    base_url: str = Field("http://localhost:11434")
    api_key: str | None = Field(None)
    model: str = Field("gpt-4o-mini")
    timeout: float = Field(120.0, gt=0)


class IngestionConfig(BaseModel):
    """``chunking_mode``: smart (content-shape chunkers) or document (strategy selector)."""

    chunking_mode: str = Field("smart")
    batch_size: int = Field(10, gt=0)
    enable_parallel_processing: bool = Field(True)
    enable_knowledge_graph: bool = Field(True)
    use_context_extension_for_embedding: bool = Field(True)

    @field_validator("chunking_mode")
    @classmethod
    def validate_chunking_mode(cls, v: str) -> str:
        if v not in {"smart", "document"}:
            raise ValueError("chunking_mode must be 'smart' or 'document'")
        return v


class ObservabilityConfig(BaseModel):
    log_level: str = Field("INFO")


class APIConfig(BaseModel):
    host: str = Field("0.0.0.0")
    port: int = Field(8000, gt=0, le=65535)
    reload: bool = Field(False)
    enable_cors: bool = Field(True)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="REGRAG_", env_nested_delimiter="__", case_sensitive=False, extra="ignore"
    )

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    knowledge_graph: KnowledgeGraphConfig = Field(default_factory=KnowledgeGraphConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    embeddings: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    environment: str = Field("development")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
