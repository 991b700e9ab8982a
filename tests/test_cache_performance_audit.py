"""
Tests for the TTL caches, the performance monitor, the audit trail and the
presentation helpers.
"""

import json
import time
from unittest.mock import patch

import pytest

from regrag.core.audit import AuditEventType, AuditTrailManager, summarize_events
from regrag.core.cache import CacheManager, TTLCache
from regrag.core.formatting import (
    format_document_links,
    format_document_links_text,
    format_metrics,
    generate_document_url,
)
from regrag.core.performance import PerformanceMonitor
from regrag.models import RetrievalMetrics


class TestCacheManager:
    """Query and embedding caches."""

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self):
        """Test cached results are returned within the TTL."""
        cache = CacheManager(ttl_seconds=300)
        await cache.set_cached_results("capital ratio", {"documents": [1]})

        assert await cache.get_cached_results("capital ratio") == {"documents": [1]}
        assert cache.get_cache_stats()["query_cache_hits"] == 1

    @pytest.mark.asyncio
    async def test_miss_after_ttl(self):
        """An entry older than its TTL is gone on read."""
        cache = CacheManager(ttl_seconds=300)
        with patch("regrag.core.cache.time") as mock_time:
            mock_time.time.return_value = 1000.0
            await cache.set_cached_results("q", {"documents": []})

            mock_time.time.return_value = 1300.0
            assert await cache.get_cached_results("q") is not None

            mock_time.time.return_value = 1300.5
            assert await cache.get_cached_results("q") is None

        stats = cache.get_cache_stats()
        assert stats["query_cache_size"] == 0
        assert stats["query_cache_misses"] == 1

    @pytest.mark.asyncio
    async def test_custom_ttl(self):
        """Test per-key TTL override."""
        cache = CacheManager(ttl_seconds=300)
        with patch("regrag.core.cache.time") as mock_time:
            mock_time.time.return_value = 1000.0
            await cache.set_cached_results("q", {"documents": []})
            assert cache.set_custom_ttl("q", 10)
            assert not cache.set_custom_ttl("missing", 10)

            mock_time.time.return_value = 1011.0
            assert await cache.get_cached_results("q") is None

    @pytest.mark.asyncio
    async def test_embedding_cache_and_stats(self):
        """Test embedding cache and hit rate statistics."""
        cache = CacheManager()
        await cache.set_cached_embedding("capital", [0.1, 0.2])

        assert await cache.get_cached_embedding("capital") == [0.1, 0.2]
        assert await cache.get_cached_embedding("leave") is None

        stats = cache.get_cache_stats()
        assert stats["embedding_cache_size"] == 1
        assert stats["embedding_cache_hit_rate"] == 0.5
        assert stats["query_cache_hit_rate"] == 0.0

    @pytest.mark.asyncio
    async def test_clear_resets_entries_and_counters(self):
        """Test clear empties both maps and resets counters."""
        cache = CacheManager()
        await cache.set_cached_results("q", {"documents": []})
        await cache.get_cached_results("q")

        cache.clear()

        stats = cache.get_cache_stats()
        assert stats["query_cache_size"] == 0
        assert stats["query_cache_hits"] == 0

    @pytest.mark.asyncio
    async def test_export_cache(self):
        """Test cache export as JSON."""
        cache = CacheManager()
        await cache.set_cached_results("q", {"documents": ["A"]})

        exported = json.loads(cache.export_cache())
        assert exported["query_cache"][0][0] == "q"
        assert exported["embedding_cache"] == []


class TestTTLCacheEviction:
    def test_full_cache_evicts_oldest(self):
        """Writing into a full map drops the oldest 20% once expired entries are gone."""
        cache: TTLCache[int] = TTLCache(ttl=300, max_size=5)
        with patch("regrag.core.cache.time") as mock_time:
            for i in range(5):
                mock_time.time.return_value = 1000.0 + i
                cache.set(f"k{i}", i)

            mock_time.time.return_value = 1010.0
            cache.set("k5", 5)

            assert len(cache) == 5
            assert cache.get("k0") is None
            assert cache.get("k5") == 5

    def test_expired_entries_purged_first(self):
        """Test expired entries are purged before eviction."""
        cache: TTLCache[int] = TTLCache(ttl=10, max_size=3)
        with patch("regrag.core.cache.time") as mock_time:
            mock_time.time.return_value = 1000.0
            cache.set("old", 0)
            mock_time.time.return_value = 1005.0
            cache.set("a", 1)
            cache.set("b", 2)

            mock_time.time.return_value = 1012.0
            cache.set("c", 3)

            assert cache.get("old") is None
            assert cache.get("a") == 1
            assert cache.get("c") == 3

    def test_overwrite_in_full_cache_keeps_other_entries(self):
        """Test replacing an existing key at capacity evicts nothing."""
        cache: TTLCache[int] = TTLCache(ttl=300, max_size=10)
        with patch("regrag.core.cache.time") as mock_time:
            for i in range(10):
                mock_time.time.return_value = 1000.0 + i
                cache.set(f"k{i}", i)

            mock_time.time.return_value = 1020.0
            cache.set("k9", 99)
            cache.set("k0", 100)

            assert len(cache) == 10
            assert cache.get("k9") == 99
            assert cache.get("k0") == 100
            assert cache.get("k1") == 1


class TestPerformanceMonitor:
    def test_averages_and_breakdown(self):
        """Test averages and strategy breakdown."""
        monitor = PerformanceMonitor()
        monitor.record_query("q1", 100.0, 0.8, 0.5, cache_hit=False, strategy="vector")
        monitor.record_query("q2", 300.0, 0.6, 0.7, cache_hit=True, strategy="hybrid")

        summary = monitor.get_performance_summary()
        assert summary["total_queries"] == 2
        assert summary["average_latency"] == pytest.approx(200.0)
        assert summary["average_accuracy"] == pytest.approx(0.7)
        assert summary["average_cache_hit_rate"] == pytest.approx(0.5)
        assert summary["strategy_breakdown"] == {"vector": 1, "hybrid": 1}
        assert monitor.get_strategy_breakdown() == {"vector": 1, "hybrid": 1}

        assert monitor.get_average_metrics().context_utilization == pytest.approx(0.6)
        assert [m.query for m in monitor.get_strategy_metrics("hybrid")] == ["q2"]

    def test_empty_summary(self):
        """Test summary with no recorded queries."""
        summary = PerformanceMonitor().get_performance_summary()
        assert summary["total_queries"] == 0
        assert summary["strategy_breakdown"] == {}

    def test_capacity_drops_oldest(self):
        """Test recording past capacity drops the oldest metric."""
        monitor = PerformanceMonitor(max_metrics=2)
        for i in range(3):
            monitor.record_query(f"q{i}", 10.0, 0.5, 0.5, cache_hit=False)
        assert [m.query for m in monitor.get_metrics()] == ["q1", "q2"]

    def test_clear_old_metrics(self):
        """Test metrics older than the window are removed."""
        monitor = PerformanceMonitor()
        stale = monitor.record_query("old", 10.0, 0.5, 0.5, cache_hit=False)
        stale.timestamp = time.time() - 48 * 3600
        monitor.record_query("new", 10.0, 0.5, 0.5, cache_hit=False)

        assert monitor.clear_old_metrics(hours=24) == 1
        assert [m.query for m in monitor.get_metrics()] == ["new"]
        assert monitor.clear_old_metrics(hours=24) == 0

    def test_time_range_and_export(self):
        """Test time range filtering and JSON export."""
        monitor = PerformanceMonitor()
        metric = monitor.record_query("q", 10.0, 0.5, 0.5, cache_hit=False, strategy="keyword")

        in_range = monitor.get_metrics_for_time_range(metric.timestamp - 1, metric.timestamp + 1)
        assert len(in_range) == 1
        assert monitor.get_metrics_for_time_range(0, 1) == []

        exported = json.loads(monitor.export_metrics())
        assert exported[0]["strategy"] == "keyword"


class TestAuditTrail:
    """Session grouping, summaries and durable logging."""

    def populate(self, audit: AuditTrailManager, session_id: str) -> None:
        audit.log_query_start("capital ratio", session_id)
        audit.log_tool_call_start("vector_search", {"query": "capital ratio"}, session_id)
        audit.log_tool_call_end("vector_search", {"documents": 2}, 10.0, session_id)
        audit.log_tool_call("keyword_search", "capital", [], 30.0, session_id)
        audit.log_document_retrieval([{"doc_id": "A"}, {"doc_id": "B"}], "vector", False, session_id)
        audit.log_user_warning("low_confidence", "Few documents found", session_id)
        audit.log_error(RuntimeError("boom"), "retrieval", session_id)

    def test_session_summary(self):
        """Test session summary counts."""
        audit = AuditTrailManager(user_id="analyst")
        session_id = audit.start_session()
        self.populate(audit, session_id)

        summary = audit.get_session_summary(session_id)
        assert summary.total_queries == 1
        assert summary.total_tool_calls == 2
        assert summary.total_documents_retrieved == 2
        assert summary.average_response_time == pytest.approx(20.0)
        assert summary.errors == 1
        assert summary.warnings == 1

        session = audit.get_session_audit_trail(session_id)
        assert session.user_id == "analyst"
        assert all(e.user_id == "analyst" for e in session.events)

    def test_events_without_session_start_one(self):
        """Test logging without a session opens one."""
        audit = AuditTrailManager()
        audit.log_query_start("q")

        sessions = audit.get_all_sessions()
        assert len(sessions) == 1
        assert sessions[0].events[0].event_type is AuditEventType.QUERY_START

    def test_end_session(self):
        """Test ending a session stamps end time and summary."""
        audit = AuditTrailManager()
        session_id = audit.start_session()
        audit.log_query_start("q", session_id)

        ended = audit.end_session(session_id)
        assert ended.end_time is not None
        assert ended.summary.total_queries == 1

        # The next unscoped event opens a new session
        audit.log_query_start("q2")
        assert len(audit.get_all_sessions()) == 2
        assert audit.end_session("missing") is None

    def test_durable_log_spans_sessions(self):
        """Test durable log keeps events across sessions."""
        audit = AuditTrailManager()
        first = audit.start_session()
        audit.log_query_start("q1", first)
        second = audit.start_session()
        audit.log_query_start("q2", second)

        assert [e.session_id for e in audit.get_durable_log()] == [first, second]

    def test_jsonl_log(self, tmp_path):
        """Test durable log is mirrored to a JSONL file."""
        log_path = tmp_path / "audit" / "trail.jsonl"
        audit = AuditTrailManager(log_path=log_path)
        session_id = audit.start_session()
        self.populate(audit, session_id)

        lines = log_path.read_text().splitlines()
        assert len(lines) == 7
        first = json.loads(lines[0])
        assert first["event_type"] == "query_start"
        assert first["session_id"] == session_id

    def test_export_and_clear(self):
        """Test audit export and bulk clear."""
        audit = AuditTrailManager()
        session_id = audit.start_session()
        audit.log_query_start("q", session_id)

        exported = json.loads(audit.export_audit_trail(session_id))
        assert exported["session_id"] == session_id
        assert exported["events"][0]["event_type"] == "query_start"
        assert audit.export_audit_trail("missing") == ""

        audit.clear_audit_trail()
        assert audit.get_all_sessions() == []
        assert audit.get_session_audit_trail(session_id) is None

    def test_summarize_events_empty(self):
        """Test summary of an empty event list."""
        summary = summarize_events([])
        assert summary.total_queries == 0
        assert summary.average_response_time == 0.0

    def test_zero_response_time_counts_toward_average(self):
        """Test an instantaneous tool call is included in the average."""
        audit = AuditTrailManager()
        session_id = audit.start_session()
        audit.log_tool_call("cache_check", "capital", None, 0.0, session_id)
        audit.log_tool_call("vector_search", "capital", [], 20.0, session_id)

        summary = audit.get_session_summary(session_id)
        assert summary.total_tool_calls == 2
        assert summary.average_response_time == pytest.approx(10.0)


class TestFormatting:
    def test_format_metrics(self):
        """Test metrics text with labelled tools."""
        metrics = RetrievalMetrics(
            query_time_ms=12.4,
            tools_called=["vector_search", "custom_tool"],
            token_count=42,
            documents_retrieved=[],
            search_strategy="vector",
            retrieval_accuracy=0.5,
        )
        assert format_metrics(metrics) == (
            "⏱️ Response Time: 12ms\n🔧 Tools Used: Vector Search, custom_tool\n📝 Tokens Used: 42"
        )

    def test_format_metrics_without_tools(self):
        """Test metrics text with no tools."""
        metrics = RetrievalMetrics(0.0, [], 0, [], "vector", 0.0)
        assert "Tools Used: None" in format_metrics(metrics)

    def test_document_links(self):
        """Test document link formatting."""
        links = format_document_links(["GA-2024-01"])

        assert links[0].url == generate_document_url("GA-2024-01")
        assert links[0].url.endswith("/GA-2024-01/GA-2024-01.pdf")
        assert links[0].title == "Document GA-2024-01"
        assert format_document_links_text(links) == (
            f"\n\n📄 **Source Documents:**\n• [GA-2024-01]({links[0].url})"
        )
        assert format_document_links_text([]) == ""
