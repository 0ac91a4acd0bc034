"""Exception hierarchy for the product docs RAG service.

Configuration and request errors are raised before any side effect.
Upstream errors wrap provider failures (embedding, generation) and are
propagated to the caller, which owns retry policy. Empty results are
never errors.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class RAGError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(RAGError):
    """Raised at startup when required settings are missing."""


class InvalidRequestError(RAGError):
    """Raised when a request or stage input fails validation."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)

    @classmethod
    def from_validation(cls, message: str, error: ValidationError) -> InvalidRequestError:
        """Build from a pydantic ValidationError, naming the failing fields."""
        errors = error.errors(include_url=False, include_context=False, include_input=False)
        reasons = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
            for err in errors
        )
        return cls(f"{message}: {reasons}" if reasons else message)


class AgentNotFoundError(RAGError):
    """Raised when no agent is registered under the requested id."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} not found", {"agent_id": agent_id})
        self.agent_id = agent_id


class UpstreamError(RAGError):
    """Base exception for model provider failures."""


class EmbeddingError(UpstreamError):
    """Raised when the embedding provider fails or returns a malformed batch."""


class GenerationError(UpstreamError):
    """Raised when the chat model provider fails."""


class VectorStoreError(RAGError):
    """Raised when the vector index is unreachable or rejects a query."""


class IngestionError(RAGError):
    """Raised when a document cannot be indexed. Nothing is written."""

    def __init__(
        self, message: str, source_id: str, details: dict[str, Any] | None = None
    ) -> None:
        details = details or {}
        details["source_id"] = source_id
        super().__init__(message, details)
        self.source_id = source_id
