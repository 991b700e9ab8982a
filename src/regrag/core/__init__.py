"""
Request orchestration and the shared runtime services: cache, performance
monitoring, audit trail and response formatting.
"""

from .audit import AuditEvent, AuditEventType, AuditSession, AuditTrailManager
from .cache import CacheManager, TTLCache
from .formatting import (
    DocumentLink,
    format_document_links,
    format_document_links_text,
    format_metrics,
    generate_document_url,
)
from .orchestrator import RAGOrchestrator, RAGRequest, RAGResponse, create_default_orchestrator
from .performance import PerformanceMetric, PerformanceMonitor

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSession",
    "AuditTrailManager",
    "CacheManager",
    "TTLCache",
    "DocumentLink",
    "format_document_links",
    "format_document_links_text",
    "format_metrics",
    "generate_document_url",
    "RAGOrchestrator",
    "RAGRequest",
    "RAGResponse",
    "create_default_orchestrator",
    "PerformanceMetric",
    "PerformanceMonitor",
]
