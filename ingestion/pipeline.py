"""Ingestion pipeline: chunk -> embed -> replace in vector store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from core.exceptions import IngestionError
from core.models import Document, IndexEntry, IngestResult
from ingestion.chunker import chunk_text
from ingestion.loader import iter_documents, load_document

if TYPE_CHECKING:
    from ingestion.embedder import Embedder
    from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """(Re)indexes documents with stable per-chunk ids.

    Each document is processed as a unit: every chunk is embedded in one
    batch before anything is written, and the write replaces all entries
    previously stored for the source.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def ensure_index(self) -> None:
        """Create the vector index once; safe to call repeatedly."""
        self.vector_store.init_index(dimensions=self.embedder.dimensions)

    def ingest(self, source_id: str, raw_text: str) -> IngestResult:
        """Index one document.

        Empty text is a no-op: neither the embedder nor the store is called.

        Raises:
            EmbeddingError: provider failure (nothing written)
            IngestionError: embeddings do not match the chunks (nothing written)
        """
        chunks = chunk_text(
            raw_text,
            source_id=source_id,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )
        if not chunks:
            logger.info("No chunks produced for %s, skipping", source_id)
            return IngestResult(source_id=source_id, chunk_count=0)

        vectors = self.embedder.embed_many([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise IngestionError(
                "Embedding count does not match chunk count",
                source_id,
                {"chunks": len(chunks), "embeddings": len(vectors)},
            )

        entries = [
            IndexEntry.from_chunk(chunk, vector, self.embedder.model)
            for chunk, vector in zip(chunks, vectors)
        ]
        removed = self.vector_store.replace_source(source_id, entries)

        logger.info(
            "Upserted %d chunks from %s (%d stale removed)",
            len(entries),
            source_id,
            removed,
        )
        return IngestResult(source_id=source_id, chunk_count=len(entries), removed=removed)

    def ingest_document(self, document: Document) -> IngestResult:
        return self.ingest(document.source_id, document.raw_text)

    def ingest_file(
        self, file_path: str | Path, base_dir: str | Path | None = None
    ) -> IngestResult:
        return self.ingest_document(load_document(file_path, base_dir))

    def ingest_directory(
        self, docs_dir: str | Path, base_dir: str | Path | None = None
    ) -> list[IngestResult]:
        """Ingest every supported file in ``docs_dir``, one document at a time.

        The first failing document stops the run; documents already
        ingested stay indexed.
        """
        results = []
        for document in iter_documents(docs_dir, base_dir):
            results.append(self.ingest_document(document))

        total = sum(r.chunk_count for r in results)
        logger.info(
            "Ingestion complete: %d chunks from %d files", total, len(results)
        )
        return results
