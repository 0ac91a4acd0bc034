"""Retrieval stage: embed the query and search the vector index."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from core.exceptions import InvalidRequestError, VectorStoreError
from core.models import DEFAULT_LIMIT, RetrievalRequest, RetrievalResult

if TYPE_CHECKING:
    from ingestion.embedder import Embedder
    from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


def validate_retrieval(request: RetrievalRequest | dict[str, Any]) -> RetrievalRequest:
    if isinstance(request, RetrievalRequest):
        return request
    try:
        return RetrievalRequest.model_validate(request)
    except ValidationError as e:
        raise InvalidRequestError.from_validation("Invalid retrieval request", e) from e


class Retriever:
    """Returns the stored text of the nearest chunks, best match first."""

    def __init__(self, vector_store: VectorStore, embedder: Embedder):
        """Initialize retriever.

        Args:
            vector_store: Vector store for similarity search
            embedder: Must be the embedder (model) used at ingestion time
        """
        self.vector_store = vector_store
        self.embedder = embedder

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[str]:
        """Search for up to ``limit`` snippets.

        An empty, missing or unreachable index yields an empty list.
        Embedding provider errors propagate.

        Raises:
            InvalidRequestError: empty query or limit outside 1..50
        """
        return self.run({"query": query, "limit": limit}).snippets

    def run(self, request: RetrievalRequest | dict[str, Any]) -> RetrievalResult:
        request = validate_retrieval(request)

        embedding = self.embedder.embed(request.query)
        try:
            matches = self.vector_store.search(
                embedding,
                top_k=request.limit,
                embedding_model=self.embedder.model,
            )
        except VectorStoreError as e:
            logger.warning("Vector search unavailable, returning no results: %s", e)
            return RetrievalResult(snippets=[])

        snippets = [m.text for m in sorted(matches, key=lambda m: m.rank)][: request.limit]
        if not snippets:
            logger.info("No results found for query: %s", request.query)
        else:
            logger.info("Retrieved %d snippets for query: %s", len(snippets), request.query)
        return RetrievalResult(snippets=snippets)
