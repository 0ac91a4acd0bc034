"""Unit tests for the retrieval stage."""

from __future__ import annotations

from unittest.mock import MagicMock

import openai
import pytest

from conftest import DIM
from core.exceptions import EmbeddingError, InvalidRequestError
from core.models import IndexEntry, RetrievalRequest, SearchMatch, chunk_id
from ingestion.embedder import Embedder
from retrieval.retriever import Retriever, validate_retrieval


def _add(store, source, index, text, vector, model="text-embedding-3-small"):
    store.upsert(
        [
            IndexEntry(
                id=chunk_id(source, index),
                vector=vector,
                text=text,
                source=source,
                chunk_index=index,
                embedding_model=model,
            )
        ]
    )


@pytest.fixture
def retriever(fake_store, keyword_openai):
    embedder = Embedder(keyword_openai, model="text-embedding-3-small", dimensions=DIM)
    return Retriever(fake_store, embedder)


class TestValidateRetrieval:
    @pytest.mark.parametrize("limit", [1, 5, 50])
    def test_limit_in_range_accepted(self, limit):
        request = validate_retrieval({"query": "price", "limit": limit})
        assert request.limit == limit

    @pytest.mark.parametrize("limit", [0, 51, -3])
    def test_limit_out_of_range_rejected(self, limit):
        with pytest.raises(InvalidRequestError, match="limit"):
            validate_retrieval({"query": "price", "limit": limit})

    def test_empty_query_rejected(self):
        with pytest.raises(InvalidRequestError, match="query"):
            validate_retrieval({"query": "", "limit": 5})

    @pytest.mark.parametrize("query", ["   ", "\n\t"])
    def test_blank_query_rejected(self, query):
        with pytest.raises(InvalidRequestError, match="query"):
            validate_retrieval({"query": query})

    def test_query_is_stripped(self):
        assert validate_retrieval({"query": "  price  "}).query == "price"

    def test_default_limit(self):
        assert validate_retrieval({"query": "price"}).limit == 5

    def test_model_passes_through(self):
        request = RetrievalRequest(query="price", limit=3)
        assert validate_retrieval(request) is request


class TestRetriever:
    def test_search_returns_best_match_first(self, retriever, fake_store):
        _add(fake_store, "a.md", 0, "Battery lasts 10 hours.", [0.0, 1.0, 0.0])
        _add(fake_store, "a.md", 1, "The price is $20.", [1.0, 0.0, 0.0])
        _add(fake_store, "b.md", 0, "Warranty is 2 years.", [0.0, 0.0, 1.0])

        snippets = retriever.search("What is the price?", limit=2)

        assert snippets[0] == "The price is $20."
        assert len(snippets) == 2

    def test_search_respects_limit(self, retriever, fake_store):
        for i in range(6):
            _add(fake_store, "a.md", i, f"Snippet {i}", [0.5, 0.5, 0.5])

        assert len(retriever.search("anything", limit=3)) == 3

    def test_empty_index_returns_empty(self, retriever):
        assert retriever.search("price") == []

    def test_unreachable_index_returns_empty(self, retriever, fake_store):
        _add(fake_store, "a.md", 0, "The price is $20.", [1.0, 0.0, 0.0])
        fake_store.unreachable = True

        assert retriever.search("price") == []

    def test_invalid_limit_does_not_embed(self, retriever, keyword_openai):
        with pytest.raises(InvalidRequestError):
            retriever.search("price", limit=0)

        keyword_openai.embeddings.create.assert_not_called()

    def test_blank_query_does_not_embed(self, retriever, keyword_openai):
        with pytest.raises(InvalidRequestError):
            retriever.search("   ")

        keyword_openai.embeddings.create.assert_not_called()

    def test_embedding_error_propagates(self, retriever, keyword_openai):
        keyword_openai.embeddings.create.side_effect = openai.OpenAIError("quota")

        with pytest.raises(EmbeddingError):
            retriever.search("price")

    def test_entries_from_other_model_skipped(self, retriever, fake_store):
        _add(fake_store, "a.md", 0, "Old model text about price", [1.0, 0.0, 0.0], model="ada-002")
        _add(fake_store, "a.md", 1, "Current text", [0.0, 1.0, 0.0])

        assert retriever.search("price", limit=5) == ["Current text"]

    def test_passes_embedding_model_and_limit(self):
        store = MagicMock()
        store.search.return_value = [
            SearchMatch(id="2", text="second", rank=2, score=0.5),
            SearchMatch(id="1", text="first", rank=1, score=0.9),
        ]
        embedder = MagicMock()
        embedder.model = "text-embedding-3-small"
        embedder.embed.return_value = [0.1, 0.2, 0.3]

        result = Retriever(store, embedder).run({"query": "price", "limit": 7})

        assert result.snippets == ["first", "second"]
        embedder.embed.assert_called_once_with("price")
        store.search.assert_called_once_with(
            [0.1, 0.2, 0.3], top_k=7, embedding_model="text-embedding-3-small"
        )
