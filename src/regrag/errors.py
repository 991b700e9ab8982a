"""
Error taxonomy for the RAG core.

Strategy boundaries catch ExternalServiceError and degrade to empty results;
ValidationError and StrategyNotFoundError propagate to the caller.
"""


class RAGError(Exception):
    """Base class for all regrag errors."""


class ValidationError(RAGError):
    """Raised when a request is malformed."""


class ExternalServiceError(RAGError):
    """A collaborator (embedding, store, generator) failed or timed out."""

    def __init__(self, message: str, service: str = "external"):
        super().__init__(message)
        self.service = service


class EmbeddingError(ExternalServiceError):
    def __init__(self, message: str):
        super().__init__(message, service="embedding")


class StoreError(ExternalServiceError):
    def __init__(self, message: str):
        super().__init__(message, service="store")


class GenerationError(ExternalServiceError):
    def __init__(self, message: str):
        super().__init__(message, service="generator")


class StrategyNotFoundError(RAGError):
    """Raised by the retrieval factory for an unregistered strategy name."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Strategy '{name}' not found. Available strategies: {', '.join(self.available)}"
        )


class PartialFailure(RAGError):
    """One leg of a composite retrieval failed while another succeeded."""

    def __init__(self, leg: str, cause: BaseException):
        self.leg = leg
        self.cause = cause
        super().__init__(f"{leg} leg failed: {cause}")
