"""
Append-only audit trail.

Events are grouped into sessions and also appended to a cross-session
durable log. When a log path is configured the durable log is mirrored to a
JSONL file, one event per line.
"""

import json
import random
import string
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..observability.logging import get_logger

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class AuditEventType(str, Enum):
    QUERY_START = "query_start"
    TOOL_CALL = "tool_call"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_END = "tool_call_end"
    DOCUMENT_RETRIEVAL = "document_retrieval"
    LLM_RESPONSE = "llm_response"
    USER_WARNING = "user_warning"
    ERROR = "error"
    API_REQUEST_START = "api_request_start"
    API_REQUEST_END = "api_request_end"
    API_REQUEST_FAILED = "api_request_failed"


def generate_id(prefix: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEvent:
    id: str
    session_id: str
    event_type: AuditEventType
    event_data: dict[str, Any]
    metadata: dict[str, Any]
    user_id: str | None = None
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data


@dataclass
class SessionSummary:
    total_queries: int = 0
    total_tool_calls: int = 0
    total_documents_retrieved: int = 0
    average_response_time: float = 0.0
    errors: int = 0
    warnings: int = 0


@dataclass
class AuditSession:
    session_id: str
    user_id: str | None = None
    start_time: str = field(default_factory=_now)
    end_time: str | None = None
    events: list[AuditEvent] = field(default_factory=list)
    summary: SessionSummary = field(default_factory=SessionSummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "events": [e.to_dict() for e in self.events],
            "summary": asdict(self.summary),
        }


def summarize_events(events: list[AuditEvent]) -> SessionSummary:
    """Derive a session summary from its event list."""
    response_times = [
        e.metadata["response_time"]
        for e in events
        if e.metadata.get("response_time") is not None
    ]
    return SessionSummary(
        total_queries=sum(1 for e in events if e.event_type is AuditEventType.QUERY_START),
        total_tool_calls=sum(
            1
            for e in events
            if e.event_type in (AuditEventType.TOOL_CALL, AuditEventType.TOOL_CALL_START)
        ),
        total_documents_retrieved=sum(
            len(e.metadata.get("documents_retrieved", []))
            for e in events
            if e.event_type is AuditEventType.DOCUMENT_RETRIEVAL
        ),
        average_response_time=sum(response_times) / len(response_times) if response_times else 0.0,
        errors=sum(1 for e in events if e.event_type is AuditEventType.ERROR),
        warnings=sum(1 for e in events if e.event_type is AuditEventType.USER_WARNING),
    )


class AuditTrailManager:
    def __init__(self, log_path: Path | str | None = None, user_id: str | None = None):
        self.log_path = Path(log_path) if log_path else None
        self.default_user_id = user_id
        self._sessions: dict[str, AuditSession] = {}
        self._durable_log: list[AuditEvent] = []
        self._current: AuditSession | None = None
        self._lock = threading.Lock()

        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    # Sessions

    def start_session(self, user_id: str | None = None) -> str:
        session = AuditSession(session_id=generate_id("session"), user_id=user_id or self.default_user_id)
        with self._lock:
            self._sessions[session.session_id] = session
            self._current = session
        logger.debug("Audit session started", session_id=session.session_id)
        return session.session_id

    def end_session(self, session_id: str | None = None) -> AuditSession | None:
        with self._lock:
            session = self._sessions.get(session_id) if session_id else self._current
            if session is None:
                return None
            session.end_time = _now()
            session.summary = summarize_events(session.events)
            if session is self._current:
                self._current = None
        return session

    def _resolve_session(self, session_id: str | None) -> AuditSession:
        if session_id:
            with self._lock:
                session = self._sessions.get(session_id)
            if session:
                return session
        with self._lock:
            current = self._current
        if current is None:
            self.start_session()
            with self._lock:
                current = self._current
        return current

    def _append(
        self,
        event_type: AuditEventType,
        event_data: dict[str, Any],
        metadata: dict[str, Any],
        session_id: str | None,
    ) -> str:
        session = self._resolve_session(session_id)
        event = AuditEvent(
            id=generate_id("event"),
            session_id=session.session_id,
            user_id=session.user_id,
            event_type=event_type,
            event_data=event_data,
            metadata=metadata,
        )
        with self._lock:
            session.events.append(event)
            self._durable_log.append(event)
            if self.log_path:
                self._write_line(event)
        return event.id

    def _write_line(self, event: AuditEvent) -> None:
        try:
            with self.log_path.open("a") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")
        except OSError as e:
            logger.warning(f"Failed to persist audit event: {e}", event_id=event.id)

    # Event logging

    def log_query_start(self, query: str, session_id: str | None = None) -> str:
        return self._append(AuditEventType.QUERY_START, {"query": query}, {"query": query}, session_id)

    def log_tool_call(
        self, tool_name: str, tool_input: Any, output: Any, response_time: float, session_id: str | None = None
    ) -> str:
        return self._append(
            AuditEventType.TOOL_CALL,
            {"tool_name": tool_name, "input": tool_input, "output": output, "response_time": response_time},
            {"tool_name": tool_name, "response_time": response_time},
            session_id,
        )

    def log_tool_call_start(self, tool_name: str, tool_input: Any, session_id: str | None = None) -> str:
        return self._append(
            AuditEventType.TOOL_CALL_START,
            {"tool_name": tool_name, "input": tool_input},
            {"tool_name": tool_name, "tool_input": tool_input},
            session_id,
        )

    def log_tool_call_end(
        self, tool_name: str, output: Any, response_time: float, session_id: str | None = None
    ) -> str:
        return self._append(
            AuditEventType.TOOL_CALL_END,
            {"tool_name": tool_name, "output": output, "response_time": response_time},
            {"tool_name": tool_name, "tool_output": output, "response_time": response_time},
            session_id,
        )

    def log_document_retrieval(
        self,
        documents: list[dict[str, Any]],
        search_strategy: str,
        cache_hit: bool,
        session_id: str | None = None,
    ) -> str:
        return self._append(
            AuditEventType.DOCUMENT_RETRIEVAL,
            {"documents": documents, "search_strategy": search_strategy, "cache_hit": cache_hit},
            {
                "documents_retrieved": [d.get("doc_id") or d.get("id") for d in documents],
                "search_strategy": search_strategy,
                "cache_hit": cache_hit,
            },
            session_id,
        )

    def log_llm_response(
        self, response: str, confidence: float, response_time: float, session_id: str | None = None
    ) -> str:
        return self._append(
            AuditEventType.LLM_RESPONSE,
            {"response": response, "confidence": confidence, "response_time": response_time},
            {"confidence": confidence, "response_time": response_time},
            session_id,
        )

    def log_user_warning(self, warning_type: str, message: str, session_id: str | None = None) -> str:
        return self._append(
            AuditEventType.USER_WARNING,
            {"warning_type": warning_type, "message": message},
            {},
            session_id,
        )

    def log_error(self, error: BaseException, context: str, session_id: str | None = None) -> str:
        return self._append(
            AuditEventType.ERROR,
            {"error": str(error), "error_type": type(error).__name__, "context": context},
            {"error_message": str(error)},
            session_id,
        )

    def log_api_request_start(
        self, request_id: str, request_data: dict[str, Any], session_id: str | None = None
    ) -> str:
        return self._append(
            AuditEventType.API_REQUEST_START,
            {"request_id": request_id, "request_data": request_data},
            {"request_id": request_id, "status": "started"},
            session_id,
        )

    def log_api_request_end(
        self,
        request_id: str,
        response_data: dict[str, Any],
        response_time: float,
        session_id: str | None = None,
    ) -> str:
        return self._append(
            AuditEventType.API_REQUEST_END,
            {"request_id": request_id, "response_data": response_data, "response_time": response_time},
            {"request_id": request_id, "status": "success", "response_time": response_time},
            session_id,
        )

    def log_api_request_failed(
        self, request_id: str, error: BaseException, response_time: float, session_id: str | None = None
    ) -> str:
        return self._append(
            AuditEventType.API_REQUEST_FAILED,
            {"request_id": request_id, "error": str(error), "response_time": response_time},
            {
                "request_id": request_id,
                "status": "failed",
                "error_type": type(error).__name__,
                "response_time": response_time,
            },
            session_id,
        )

    # Queries

    def get_session_audit_trail(self, session_id: str) -> AuditSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_all_sessions(self) -> list[AuditSession]:
        with self._lock:
            return list(self._sessions.values())

    def get_durable_log(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._durable_log)

    def get_session_summary(self, session_id: str) -> SessionSummary | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.summary = summarize_events(session.events)
            return session.summary

    def export_audit_trail(self, session_id: str | None = None) -> str:
        with self._lock:
            if session_id:
                session = self._sessions.get(session_id)
                return json.dumps(session.to_dict(), indent=2, default=str) if session else ""
            return json.dumps([s.to_dict() for s in self._sessions.values()], indent=2, default=str)

    def clear_audit_trail(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._durable_log.clear()
            self._current = None
        logger.info("Audit trail cleared")
