"""
FastAPI server for the regulatory RAG core.

Endpoints:
- GET /health: component status and uptime
- POST /query: run a query through the RAG orchestrator
- POST /documents: ingest documents into the store and knowledge graph
- GET /strategies: registered retrieval strategies with descriptions
- GET /metrics: Prometheus exposition of probe counters and latencies
- GET /performance, DELETE /performance/expired: query performance summary and retention pruning
- GET /cache/stats, DELETE /cache: cache inspection and reset
- GET /audit/{session_id}: audit trail of a session

Usage:
    $ uvicorn regrag.api.server:app --reload --host 0.0.0.0 --port 8000

    $ curl -X POST http://localhost:8000/query \\
      -H 'Content-Type: application/json' \\
      -d '{"query":"What are the capital adequacy requirements?"}'

Configuration:
    - REGRAG_API__HOST=0.0.0.0
    - REGRAG_API__PORT=8000
    - REGRAG_API__ENABLE_CORS=true
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from .. import __version__
from ..config.container import Container, get_container
from ..config.settings import get_settings
from ..core.orchestrator import MAX_LIMIT, RAGOrchestrator, RAGRequest
from ..errors import ValidationError
from ..ingestion.pipeline import IngestionPipeline
from ..models import DocumentInfo
from ..observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Global state
container: Container | None = None
orchestrator: RAGOrchestrator | None = None


def _reset_globals_for_tests() -> None:
    """Reset global state for test isolation."""
    global orchestrator, container
    orchestrator = None
    container = None


class QueryRequest(BaseModel):
    """Request model for the query endpoint."""

    query: str = Field(..., min_length=1, max_length=5000, description="The query to process")
    search_type: str | None = Field(None, description="vector, keyword, hybrid or knowledge_graph")
    limit: int = Field(default_factory=lambda: get_settings().retrieval.default_limit, ge=1, le=MAX_LIMIT)
    use_cache: bool = True
    track_performance: bool = True


class QueryResponse(BaseModel):
    """Response model for the query endpoint."""

    documents: list[dict[str, Any]] = []
    context: str = ""
    analysis: dict[str, Any] = Field(default_factory=dict)
    search_strategy: str
    metrics: dict[str, Any] = Field(default_factory=dict)
    document_links: list[dict[str, Any]] = []
    metrics_text: str = ""
    document_links_text: str = ""
    processing_time_ms: float = 0.0
    tools_used: list[str] = []
    cache_hit: bool = False
    performance_metrics: dict[str, Any] | None = None
    audit_session_id: str | None = None
    confidence: float = 0.0


class DocumentPayload(BaseModel):
    doc_id: str = Field(..., min_length=1)
    title: str = ""
    doc_type_code: str = ""
    doc_type_desc: str = ""
    version: str = ""
    issue_date: str = ""
    headers: list[str] = Field(default_factory=list)
    footers: list[str] = Field(default_factory=list)
    body_content: list[str] = Field(default_factory=list)
    page_numbers: list[int] = Field(default_factory=list)


class IngestRequest(BaseModel):
    documents: list[DocumentPayload] = Field(..., min_length=1)


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""

    status: str
    version: str
    uptime_seconds: float
    components: dict[str, str]


def _get_container() -> Container:
    return container or get_container()


def _get_orchestrator() -> RAGOrchestrator:
    current = orchestrator
    if current is None:
        try:
            current = _get_container().get("orchestrator")
        except Exception as e:
            raise HTTPException(status_code=503, detail="Orchestrator not initialized") from e
    if current is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return current


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global container, orchestrator

    settings = get_settings()
    setup_logging(settings.observability.log_level)
    logger.info("Starting regrag API server...", environment=settings.environment)

    container = get_container()
    orchestrator = container.get("orchestrator")
    app.state.startup_time = time.time()

    logger.info("regrag API server ready", strategies=orchestrator.get_available_strategies())

    yield

    logger.info("Shutting down regrag API server...")
    if orchestrator is not None:
        orchestrator.audit_trail.end_session(orchestrator.session_id)
    if container is not None:
        await container.cleanup()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="regrag",
        description="Retrieval-augmented generation over regulatory documents",
        version=__version__,
        lifespan=lifespan,
    )

    if settings.api.enable_cors:
        cors_origins = settings.api.cors_origins
        if "*" in cors_origins and settings.is_production():
            logger.warning("Wildcard CORS disabled in production")
            cors_origins = []

        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["authorization", "content-type", "x-request-id"],
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check_endpoint() -> HealthResponse:
        """Health check endpoint."""
        startup_time = getattr(app.state, "startup_time", time.time())
        components = {"config": "healthy"}

        components["orchestrator"] = "healthy" if orchestrator else "not_initialized"

        try:
            stats = await _get_container().get("store").get_stats()
            components["store"] = "healthy" if "error" not in stats else "unhealthy"
        except Exception as e:
            logger.warning(f"Store health check failed: {e}")
            components["store"] = "error"

        healthy = all(status == "healthy" for status in components.values())
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            version=__version__,
            uptime_seconds=max(0.0, time.time() - startup_time),
            components=components,
        )

    @app.post("/query", response_model=QueryResponse)
    async def process_query_endpoint(request: QueryRequest) -> QueryResponse:
        """Run a query through retrieval and return documents, context and metrics."""
        current = _get_orchestrator()
        try:
            rag_request = RAGRequest(
                query=request.query,
                search_type=request.search_type,
                limit=request.limit,
                use_cache=request.use_cache,
                track_performance=request.track_performance,
            )
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

        logger.info("Processing API query", query_length=len(request.query))
        response = await current.process_query(rag_request)
        return QueryResponse(**response.to_dict())

    @app.post("/documents")
    async def ingest_documents_endpoint(request: IngestRequest) -> dict[str, Any]:
        """Chunk, embed and store the given documents."""
        pipeline: IngestionPipeline = _get_container().get("ingestion_pipeline")
        documents = [DocumentInfo.from_dict(doc.model_dump()) for doc in request.documents]
        results = await pipeline.process_batch(documents)
        return {
            "processed": len(results),
            "failed": sum(1 for r in results if not r.succeeded),
            "results": [
                {
                    "document_id": r.document_id,
                    "chunks_processed": r.chunks_processed,
                    "relationships_created": r.relationships_created,
                    "processing_time_ms": r.processing_time_ms,
                    "errors": r.errors,
                }
                for r in results
            ],
        }

    @app.get("/strategies")
    async def list_strategies_endpoint() -> dict[str, Any]:
        return {"strategies": _get_orchestrator().get_strategy_descriptions()}

    @app.get("/metrics")
    async def get_metrics_endpoint() -> PlainTextResponse:
        """Probe counters and latency histograms in Prometheus format."""
        try:
            return PlainTextResponse(content=generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate metrics") from e

    @app.get("/performance")
    async def get_performance_endpoint() -> dict[str, Any]:
        return _get_orchestrator().get_performance_summary()

    @app.delete("/performance/expired")
    async def prune_performance_endpoint() -> dict[str, int]:
        """Drop metrics older than the configured retention window."""
        removed = _get_orchestrator().performance_monitor.clear_old_metrics(
            get_settings().performance.retention_hours
        )
        if removed:
            logger.info(f"Dropped {removed} expired performance metrics")
        return {"removed": removed}

    @app.get("/cache/stats")
    async def get_cache_stats_endpoint() -> dict[str, Any]:
        return _get_orchestrator().get_cache_stats()

    @app.delete("/cache")
    async def clear_cache_endpoint() -> dict[str, str]:
        _get_orchestrator().clear_cache()
        return {"status": "cleared"}

    @app.get("/audit/{session_id}")
    async def get_audit_trail_endpoint(session_id: str) -> dict[str, Any]:
        session = _get_orchestrator().audit_trail.get_session_audit_trail(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Audit session '{session_id}' not found")
        return session.to_dict()

    @app.exception_handler(Exception)
    async def global_exception_handler_endpoint(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        logger.error(f"Unhandled API exception at {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if not settings.is_production() else "An unexpected error occurred",
            },
        )

    return app


app = create_app()
