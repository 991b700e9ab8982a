"""
Timing probes for pipeline stages.

A probe times a block, logs the outcome, feeds the Prometheus request counter
and latency histogram, opens an OpenTelemetry span, and keeps per-trace
timings so a request's stage breakdown can be read back after the fact.
"""

import contextlib
import time
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram

from .logging import get_logger

log = get_logger("regrag.probe")

tracer = trace.get_tracer("regrag")

REQUESTS = Counter("regrag_operations_total", "Probed operations", ["op", "ok"])
LATENCY = Histogram("regrag_operation_latency_seconds", "Probed operation latency", ["op"])

_TRACE_METRICS: dict[str, dict[str, dict[str, Any]]] = {}


@contextlib.contextmanager
def probe(op: str, trace_id: str | None = None, **labels: Any):
    """
    Time the enclosed block as operation ``op``.

    Args:
        op: Operation name, e.g. "retrieval.hybrid"
        trace_id: Request id used to group timings
        **labels: Extra fields attached to the log line and the stored timing
    """
    start = time.perf_counter()
    ok = "true"
    error_type = None

    with tracer.start_as_current_span(op) as span:
        for key, value in labels.items():
            span.set_attribute(f"regrag.{key}", str(value))
        try:
            yield
        except Exception as e:
            ok = "false"
            error_type = type(e).__name__
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            log.timed(
                f"probe {op} ok={ok}" + (f" error={error_type}" if error_type else ""),
                duration_ms,
                op=op,
                **labels,
            )
            REQUESTS.labels(op=op, ok=ok).inc()
            LATENCY.labels(op=op).observe(duration_ms / 1000.0)

            if trace_id:
                _TRACE_METRICS.setdefault(trace_id, {})[op] = {
                    "duration_ms": duration_ms,
                    "success": ok == "true",
                    "error_type": error_type,
                    "labels": labels,
                    "timestamp": time.time(),
                }


def get_trace_metrics(trace_id: str) -> dict[str, dict[str, Any]]:
    """Stage timings recorded for one request."""
    return _TRACE_METRICS.get(trace_id, {})


def clear_trace_metrics(trace_id: str | None = None) -> None:
    if trace_id is None:
        _TRACE_METRICS.clear()
    else:
        _TRACE_METRICS.pop(trace_id, None)
