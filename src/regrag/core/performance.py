"""
Rolling per-query performance metrics.
"""

import json
import threading
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from typing import Any

DEFAULT_MAX_METRICS = 1000


@dataclass
class PerformanceMetric:
    query_latency: float
    retrieval_accuracy: float
    context_utilization: float
    cache_hit_rate: float
    query: str = ""
    strategy: str = "unknown"
    timestamp: float = field(default_factory=time.time)


class PerformanceMonitor:
    """Fixed-capacity buffer; recording past capacity drops the oldest metric."""

    def __init__(self, max_metrics: int = DEFAULT_MAX_METRICS):
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._lock = threading.Lock()

    def record_query(
        self,
        query: str,
        latency: float,
        accuracy: float,
        context_utilization: float,
        cache_hit: bool,
        strategy: str = "unknown",
    ) -> PerformanceMetric:
        metric = PerformanceMetric(
            query_latency=latency,
            retrieval_accuracy=accuracy,
            context_utilization=context_utilization,
            cache_hit_rate=1.0 if cache_hit else 0.0,
            query=query,
            strategy=strategy,
        )
        with self._lock:
            self._metrics.append(metric)
        return metric

    def get_metrics(self) -> list[PerformanceMetric]:
        with self._lock:
            return list(self._metrics)

    def get_average_metrics(self) -> PerformanceMetric:
        metrics = self.get_metrics()
        if not metrics:
            return PerformanceMetric(0.0, 0.0, 0.0, 0.0, strategy="")
        count = len(metrics)
        return PerformanceMetric(
            query_latency=sum(m.query_latency for m in metrics) / count,
            retrieval_accuracy=sum(m.retrieval_accuracy for m in metrics) / count,
            context_utilization=sum(m.context_utilization for m in metrics) / count,
            cache_hit_rate=sum(m.cache_hit_rate for m in metrics) / count,
            strategy="",
        )

    def get_strategy_metrics(self, strategy: str) -> list[PerformanceMetric]:
        return [m for m in self.get_metrics() if m.strategy == strategy]

    def get_strategy_breakdown(self) -> dict[str, int]:
        return dict(Counter(m.strategy for m in self.get_metrics()))

    def get_metrics_for_time_range(self, start_time: float, end_time: float) -> list[PerformanceMetric]:
        return [m for m in self.get_metrics() if start_time <= m.timestamp <= end_time]

    def clear_old_metrics(self, hours: float = 24) -> int:
        """Drop metrics older than ``hours``. Returns how many were removed."""
        cutoff = time.time() - hours * 3600
        with self._lock:
            kept = [m for m in self._metrics if m.timestamp > cutoff]
            removed = len(self._metrics) - len(kept)
            self._metrics.clear()
            self._metrics.extend(kept)
        return removed

    def get_performance_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        if not metrics:
            return {
                "total_queries": 0,
                "average_latency": 0.0,
                "average_accuracy": 0.0,
                "average_cache_hit_rate": 0.0,
                "strategy_breakdown": {},
            }
        average = self.get_average_metrics()
        return {
            "total_queries": len(metrics),
            "average_latency": average.query_latency,
            "average_accuracy": average.retrieval_accuracy,
            "average_cache_hit_rate": average.cache_hit_rate,
            "strategy_breakdown": dict(Counter(m.strategy for m in metrics)),
        }

    def export_metrics(self) -> str:
        return json.dumps([asdict(m) for m in self.get_metrics()], indent=2)

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
