"""Batch text embedding via the OpenAI embeddings API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import openai

from core.config import settings
from core.exceptions import EmbeddingError

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)


class Embedder:
    """Maps text to fixed-dimension vectors with a single provider model.

    Ingestion and retrieval must share one instance (or at least one model):
    vectors from different models are not comparable.
    """

    def __init__(
        self,
        openai_client: OpenAI | None = None,
        model: str | None = None,
        dimensions: int | None = None,
    ):
        if openai_client is None:
            openai_client = openai.OpenAI(api_key=settings.openai_api_key)

        self.openai_client = openai_client
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed all texts in one provider call.

        The i-th returned vector belongs to the i-th text. The whole batch
        fails if the provider errors, returns a different number of vectors,
        or returns vectors of the wrong dimension.
        """
        if not texts:
            return []

        try:
            response = self.openai_client.embeddings.create(
                model=self.model, input=texts
            )
        except openai.OpenAIError as e:
            logger.error("Failed to embed %d texts: %s", len(texts), e)
            raise EmbeddingError(
                f"Embedding provider error: {e}", {"model": self.model}
            ) from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingError(
                "Embedding batch size mismatch",
                {"expected": len(texts), "received": len(data)},
            )

        vectors = [list(item.embedding) for item in data]
        for position, vector in enumerate(vectors):
            if len(vector) != self.dimensions:
                raise EmbeddingError(
                    "Embedding dimension mismatch",
                    {
                        "position": position,
                        "expected": self.dimensions,
                        "received": len(vector),
                    },
                )

        logger.info("Embedded %d texts with %s", len(texts), self.model)
        return vectors

    def embed(self, text: str) -> list[float]:
        """Embed a single text (e.g. a query)."""
        return self.embed_many([text])[0]
