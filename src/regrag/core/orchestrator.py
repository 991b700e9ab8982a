"""
RAG orchestrator.

Runs one request through cache lookup, query processing, strategy selection,
retrieval, formatting, caching and performance tracking. Each step is
bracketed by tool-call audit events. Apart from request validation, no
exception escapes ``process_query``; failures produce a degraded response
tagged ``error``.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any

from ..config.settings import Settings, get_settings
from ..errors import ValidationError
from ..models import RetrievalMetrics, RetrievalResult, SearchResult
from ..observability.logging import clear_trace_id, get_logger, set_trace_id
from ..observability.probe import clear_trace_metrics, probe
from ..processing.intent import QueryIntent
from ..processing.processor import (
    FALLBACK_TOOL,
    QueryProcessingResult,
    QueryProcessor,
    create_advanced_processor,
)
from ..retrieval.factory import RetrievalStrategyFactory
from ..storage.base import DocumentStore, EmbeddingOracle
from .audit import AuditTrailManager, generate_id
from .cache import CacheManager
from .formatting import (
    DocumentLink,
    format_document_links,
    format_document_links_text,
    format_metrics,
)
from .performance import PerformanceMonitor

logger = get_logger(__name__)

SEARCH_TYPES = ("vector", "keyword", "hybrid", "knowledge_graph")
MAX_LIMIT = 100
CONTEXT_UTILIZATION_BASE = 4000
ERROR_TOOL = "error"


@dataclass
class RAGRequest:
    query: str
    search_type: str | None = None
    limit: int = 5
    use_cache: bool = True
    track_performance: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.query, str) or not self.query.strip():
            raise ValidationError("query must be a non-empty string")
        if self.search_type is not None and self.search_type not in SEARCH_TYPES:
            raise ValidationError(
                f"search_type must be one of {', '.join(SEARCH_TYPES)}, got '{self.search_type}'"
            )
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise ValidationError("limit must be an integer")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")


@dataclass
class RAGResponse:
    documents: list[SearchResult]
    context: str
    analysis: dict[str, Any]
    search_strategy: str
    metrics: RetrievalMetrics
    document_links: list[DocumentLink]
    metrics_text: str
    document_links_text: str
    processing_time_ms: float
    tools_used: list[str]
    cache_hit: bool
    performance_metrics: dict[str, Any] | None = None
    audit_session_id: str | None = None
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": [d.to_dict() for d in self.documents],
            "context": self.context,
            "analysis": self.analysis,
            "search_strategy": self.search_strategy,
            "metrics": self.metrics.to_dict(),
            "document_links": [asdict(link) for link in self.document_links],
            "metrics_text": self.metrics_text,
            "document_links_text": self.document_links_text,
            "processing_time_ms": self.processing_time_ms,
            "tools_used": list(self.tools_used),
            "cache_hit": self.cache_hit,
            "performance_metrics": self.performance_metrics,
            "audit_session_id": self.audit_session_id,
            "confidence": self.confidence,
        }


def fallback_analysis() -> dict[str, Any]:
    return {
        "intent": QueryIntent.GENERAL_INQUIRY.value,
        "entities": [],
        "search_strategy": "vector",
        "confidence": 0.0,
    }


def context_utilization(context: str) -> float:
    if not context:
        return 0.0
    return min(len(context) / CONTEXT_UTILIZATION_BASE, 1.0)


def response_confidence(processing: QueryProcessingResult, retrieval: RetrievalResult) -> float:
    confidence = 0.5 + processing.analysis.confidence * 0.2
    if retrieval.documents:
        confidence += 0.2
    if len(retrieval.context) > 100:
        confidence += 0.1
    if FALLBACK_TOOL in processing.tools_used:
        confidence -= 0.2
    return max(0.1, min(1.0, confidence))


class RAGOrchestrator:
    def __init__(
        self,
        query_processor: QueryProcessor,
        strategy_factory: RetrievalStrategyFactory,
        performance_monitor: PerformanceMonitor,
        cache_manager: CacheManager,
        audit_trail: AuditTrailManager | None = None,
    ):
        self.query_processor = query_processor
        self.strategy_factory = strategy_factory
        self.performance_monitor = performance_monitor
        self.cache_manager = cache_manager
        self.audit_trail = audit_trail or AuditTrailManager()
        self.session_id = self.audit_trail.start_session()

    async def process_query(self, request: RAGRequest) -> RAGResponse:
        start = time.perf_counter()
        request_id = generate_id("req")
        set_trace_id(request_id)
        audit = self.audit_trail
        session = self._active_session()

        try:
            with probe("orchestrator.process_query", request_id):
                logger.info(
                    f"Processing query: {request.query[:100]}",
                    search_type=request.search_type,
                    limit=request.limit,
                )
                audit.log_api_request_start(
                    request_id,
                    {"query": request.query, "search_type": request.search_type, "limit": request.limit},
                    session,
                )
                audit.log_query_start(request.query, session)
                return await self._run(request, request_id, start)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"RAG orchestrator failed: {e}", request_id=request_id, error_type=type(e).__name__)
            audit.log_error(e, "rag_orchestrator", session)
            audit.log_api_request_failed(request_id, e, elapsed, session)
            return self._error_response(request, elapsed)
        finally:
            clear_trace_metrics(request_id)
            clear_trace_id()

    def _active_session(self) -> str:
        """Current audit session id, restarted if the trail was cleared."""
        if self.audit_trail.get_session_audit_trail(self.session_id) is None:
            self.session_id = self.audit_trail.start_session()
            logger.info("Audit session restarted", session_id=self.session_id)
        return self.session_id

    async def _run(self, request: RAGRequest, request_id: str, start: float) -> RAGResponse:
        audit = self.audit_trail
        session = self.session_id

        if request.use_cache:
            step = time.perf_counter()
            audit.log_tool_call_start("cache_check", {"query": request.query}, session)
            cached = await self.cache_manager.get_cached_results(request.query)
            audit.log_tool_call_end("cache_check", {"cache_hit": cached is not None}, _ms(step), session)
            if cached is not None:
                response = self._response_from_cache(cached, start)
                if request.track_performance:
                    self.performance_monitor.record_query(
                        request.query,
                        response.processing_time_ms,
                        response.metrics.retrieval_accuracy,
                        context_utilization(response.context),
                        True,
                        response.search_strategy,
                    )
                audit.log_api_request_end(
                    request_id,
                    {"cache_hit": True, "documents": len(response.documents)},
                    response.processing_time_ms,
                    session,
                )
                logger.info("Served query from cache", request_id=request_id)
                return response

        step = time.perf_counter()
        audit.log_tool_call_start("query_processing", {"query": request.query}, session)
        processing = await self.query_processor.process(request.query)
        audit.log_tool_call_end(
            "query_processing",
            {"analysis": processing.analysis.to_dict(), "tools_used": processing.tools_used},
            _ms(step),
            session,
        )

        strategy_name = processing.analysis.search_strategy or request.search_type or "vector"
        step = time.perf_counter()
        audit.log_tool_call_start("strategy_selection", {"strategy": strategy_name}, session)
        strategy = self.strategy_factory.create_strategy(strategy_name)
        audit.log_tool_call_end("strategy_selection", {"selected_strategy": strategy_name}, _ms(step), session)

        step = time.perf_counter()
        audit.log_tool_call_start(
            "document_retrieval", {"query": request.query, "strategy": strategy_name}, session
        )
        retrieval = await strategy.search(request.query, request.limit)
        audit.log_tool_call_end(
            "document_retrieval",
            {"documents": len(retrieval.documents), "strategy": strategy_name},
            _ms(step),
            session,
        )
        audit.log_document_retrieval(
            [d.to_dict() for d in retrieval.documents], strategy_name, False, session
        )

        step = time.perf_counter()
        audit.log_tool_call_start("metrics_generation", {"documents": len(retrieval.documents)}, session)
        document_links = format_document_links(retrieval.metrics.documents_retrieved)
        metrics_text = format_metrics(retrieval.metrics)
        document_links_text = format_document_links_text(document_links)
        audit.log_tool_call_end(
            "metrics_generation",
            {"document_links": len(document_links), "metrics_text": metrics_text},
            _ms(step),
            session,
        )

        tools_used = [*processing.tools_used, *retrieval.metrics.tools_called]
        analysis = processing.analysis.to_dict()

        if request.use_cache:
            step = time.perf_counter()
            audit.log_tool_call_start("cache_storage", {"query": request.query}, session)
            await self.cache_manager.set_cached_results(
                request.query,
                {
                    "documents": retrieval.documents,
                    "context": retrieval.context,
                    "analysis": analysis,
                    "search_strategy": strategy_name,
                    "metrics": retrieval.metrics,
                    "document_links": document_links,
                    "metrics_text": metrics_text,
                    "document_links_text": document_links_text,
                    "tools_used": tools_used,
                },
            )
            audit.log_tool_call_end("cache_storage", {"stored": True}, _ms(step), session)

        if request.track_performance:
            step = time.perf_counter()
            audit.log_tool_call_start("performance_tracking", {"query": request.query}, session)
            self.performance_monitor.record_query(
                request.query,
                _ms(start),
                retrieval.metrics.retrieval_accuracy,
                context_utilization(retrieval.context),
                False,
                strategy_name,
            )
            audit.log_tool_call_end("performance_tracking", {"tracked": True}, _ms(step), session)

        total_ms = _ms(start)
        confidence = response_confidence(processing, retrieval)
        audit.log_llm_response(retrieval.context, confidence, total_ms, session)
        audit.log_api_request_end(
            request_id,
            {
                "documents": len(retrieval.documents),
                "strategy": strategy_name,
                "processing_time_ms": total_ms,
                "confidence": confidence,
            },
            total_ms,
            session,
        )

        logger.timed(
            "Query processed",
            total_ms,
            strategy=strategy_name,
            documents=len(retrieval.documents),
            confidence=round(confidence, 3),
        )

        return RAGResponse(
            documents=retrieval.documents,
            context=retrieval.context,
            analysis=analysis,
            search_strategy=strategy_name,
            metrics=retrieval.metrics,
            document_links=document_links,
            metrics_text=metrics_text,
            document_links_text=document_links_text,
            processing_time_ms=total_ms,
            tools_used=tools_used,
            cache_hit=False,
            performance_metrics=(
                self.performance_monitor.get_performance_summary() if request.track_performance else None
            ),
            audit_session_id=session,
            confidence=confidence,
        )

    def _response_from_cache(self, cached: dict[str, Any], start: float) -> RAGResponse:
        return RAGResponse(
            documents=list(cached.get("documents", [])),
            context=cached.get("context", ""),
            analysis=cached.get("analysis") or fallback_analysis(),
            search_strategy=cached.get("search_strategy", "vector"),
            metrics=cached.get("metrics") or RetrievalResult.empty("cache", ["cache"]).metrics,
            document_links=list(cached.get("document_links", [])),
            metrics_text=cached.get("metrics_text", "Retrieved from cache"),
            document_links_text=cached.get("document_links_text", ""),
            processing_time_ms=_ms(start),
            tools_used=list(cached.get("tools_used", ["cache"])),
            cache_hit=True,
            audit_session_id=self.session_id,
        )

    def _error_response(self, request: RAGRequest, elapsed_ms: float) -> RAGResponse:
        return RAGResponse(
            documents=[],
            context="",
            analysis=fallback_analysis(),
            search_strategy=request.search_type or "vector",
            metrics=RetrievalResult.empty(ERROR_TOOL, [ERROR_TOOL], query_time_ms=elapsed_ms).metrics,
            document_links=[],
            metrics_text="Error occurred during processing",
            document_links_text="",
            processing_time_ms=elapsed_ms,
            tools_used=[ERROR_TOOL],
            cache_hit=False,
            audit_session_id=self.session_id,
        )

    def get_available_strategies(self) -> list[str]:
        return self.strategy_factory.get_available_strategies()

    def get_strategy_descriptions(self) -> list[dict[str, str]]:
        return self.strategy_factory.get_all_strategies_with_descriptions()

    def get_performance_summary(self) -> dict[str, Any]:
        return self.performance_monitor.get_performance_summary()

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache_manager.get_cache_stats()

    def clear_cache(self) -> None:
        self.cache_manager.clear()

    def export_performance_metrics(self) -> str:
        return self.performance_monitor.export_metrics()

    def export_cache_data(self) -> str:
        return self.cache_manager.export_cache()


def _ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000


def create_default_orchestrator(
    store: DocumentStore,
    embedder: EmbeddingOracle,
    settings: Settings | None = None,
    query_processor: QueryProcessor | None = None,
) -> RAGOrchestrator:
    """Orchestrator with the advanced query processor and settings-driven components."""
    settings = settings or get_settings()
    retrieval = settings.retrieval
    cache_manager = CacheManager(settings.cache.ttl_seconds, settings.cache.max_size)
    return RAGOrchestrator(
        query_processor=query_processor or create_advanced_processor(),
        strategy_factory=RetrievalStrategyFactory(
            store,
            embedder,
            similarity_threshold=retrieval.similarity_threshold,
            min_content_length=retrieval.min_content_length,
            max_context_tokens=retrieval.max_context_tokens,
            cache_manager=cache_manager,
        ),
        performance_monitor=PerformanceMonitor(settings.performance.max_metrics),
        cache_manager=cache_manager,
        audit_trail=AuditTrailManager(settings.audit.log_path, settings.audit.user_id),
    )
