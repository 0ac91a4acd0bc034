"""Shared fixtures: mock OpenAI responses and an in-memory vector store."""

from __future__ import annotations

import math
from unittest.mock import MagicMock, Mock

import pytest

from core.exceptions import VectorStoreError
from core.models import IndexEntry, SearchMatch

DIM = 3


def embedding_response(vectors: list[list[float]], order: list[int] | None = None) -> Mock:
    """Build a mock embeddings response; ``order`` shuffles the data items."""
    items = [Mock(embedding=vector, index=i) for i, vector in enumerate(vectors)]
    if order is not None:
        items = [items[i] for i in order]
    return Mock(data=items)


def chat_response(content: str | None) -> Mock:
    return Mock(choices=[Mock(message=Mock(content=content))])


def keyword_vector(text: str) -> list[float]:
    """Deterministic 3-d embedding keyed on a few product words."""
    lowered = text.lower()
    return [
        1.0 if "price" in lowered else 0.0,
        1.0 if "battery" in lowered else 0.0,
        1.0 if "warranty" in lowered else 0.1,
    ]


class FakeVectorStore:
    """In-memory stand-in for VectorStore with the same replace semantics."""

    def __init__(self, index_name: str = "product_docs", dimensions: int = DIM):
        self.index_name = index_name
        self.dimensions = dimensions
        self.entries: dict[str, IndexEntry] = {}
        self.index_created = 0
        self.unreachable = False
        self.replace_calls: list[str] = []

    def init_index(self, name: str | None = None, dimensions: int | None = None) -> None:
        self.index_created += 1

    def upsert(self, entries: list[IndexEntry]) -> int:
        for entry in entries:
            self.entries[entry.id] = entry
        return len(entries)

    def replace_source(self, source: str, entries: list[IndexEntry]) -> int:
        self.replace_calls.append(source)
        keep = {entry.id for entry in entries}
        stale = [
            entry_id
            for entry_id, entry in self.entries.items()
            if entry.source == source and entry_id not in keep
        ]
        for entry_id in stale:
            del self.entries[entry_id]
        self.upsert(entries)
        return len(stale)

    def delete_source(self, source: str) -> int:
        doomed = [i for i, e in self.entries.items() if e.source == source]
        for entry_id in doomed:
            del self.entries[entry_id]
        return len(doomed)

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        embedding_model: str | None = None,
    ) -> list[SearchMatch]:
        if self.unreachable:
            raise VectorStoreError("connection refused")

        candidates = [
            e
            for e in self.entries.values()
            if embedding_model is None
            or not e.embedding_model
            or e.embedding_model == embedding_model
        ]
        scored = sorted(
            candidates,
            key=lambda e: (-_cosine(query_embedding, e.vector), e.source, e.chunk_index),
        )
        return [
            SearchMatch(
                id=e.id,
                text=e.text,
                source=e.source,
                chunk_index=e.chunk_index,
                score=_cosine(query_embedding, e.vector),
                rank=i + 1,
            )
            for i, e in enumerate(scored[:top_k])
        ]

    def count(self) -> int:
        return len(self.entries)

    def count_by_source(self, source: str) -> int:
        return sum(1 for e in self.entries.values() if e.source == source)

    def close(self) -> None:
        pass


def _cosine(a: list[float], b: list[float]) -> float:
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (na * nb)


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def keyword_openai():
    """OpenAI client mock whose embeddings follow ``keyword_vector``."""
    client = MagicMock()
    client.embeddings.create.side_effect = lambda model, input: embedding_response(
        [keyword_vector(text) for text in input]
    )
    return client
