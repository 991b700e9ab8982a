"""Logging and probing helpers."""

from .logging import clear_trace_id, get_logger, get_trace_id, set_trace_id, setup_logging
from .probe import clear_trace_metrics, get_trace_metrics, probe

__all__ = [
    "clear_trace_id",
    "clear_trace_metrics",
    "get_logger",
    "get_trace_id",
    "get_trace_metrics",
    "probe",
    "set_trace_id",
    "setup_logging",
]
