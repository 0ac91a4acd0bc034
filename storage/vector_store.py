"""Neo4j Vector Index store for product document chunks."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from neo4j.exceptions import DriverError, Neo4jError

from core.config import settings
from core.exceptions import VectorStoreError
from core.models import IndexEntry, SearchMatch

if TYPE_CHECKING:
    from neo4j import Driver, ManagedTransaction, Session

logger = logging.getLogger(__name__)

NODE_LABEL = "ProductChunk"
EMBEDDING_PROPERTY = "embedding"

_MERGE_ROWS = f"""
UNWIND $rows AS row
MERGE (c:{NODE_LABEL} {{id: row.id}})
SET c.text = row.text,
    c.source = row.source,
    c.chunk_index = row.chunk_index,
    c.embedding_model = row.embedding_model,
    c.{EMBEDDING_PROPERTY} = row.vector
"""


class VectorStore:
    """Neo4j-backed vector store with cosine similarity search.

    Entries are keyed by chunk id, so writing the same chunk twice
    overwrites it. ``replace_source`` makes re-ingestion a full replace.
    Every driver failure surfaces as VectorStoreError.
    """

    def __init__(
        self,
        driver: Driver | None = None,
        index_name: str | None = None,
        dimensions: int | None = None,
    ):
        if driver is None:
            from neo4j import GraphDatabase

            self._driver = GraphDatabase.driver(
                settings.neo4j_uri,
                auth=(settings.neo4j_user, settings.neo4j_password),
            )
        else:
            self._driver = driver

        self.index_name = index_name or settings.index_name
        self.dimensions = dimensions or settings.embedding_dimensions

    def close(self) -> None:
        self._driver.close()

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._driver.session() as session:
                yield session
        except (DriverError, Neo4jError) as e:
            logger.error("Vector store %s failed: %s", action, e)
            raise VectorStoreError(
                f"Vector store {action} failed: {e}", {"index": self.index_name}
            ) from e

    def init_index(self, name: str | None = None, dimensions: int | None = None) -> None:
        """Create vector index and id constraint if they don't exist."""
        name = name or self.index_name
        dimensions = dimensions or self.dimensions

        with self._session("index creation") as session:
            session.run(
                f"""
                CREATE CONSTRAINT {name}_id IF NOT EXISTS
                FOR (n:{NODE_LABEL}) REQUIRE n.id IS UNIQUE
                """
            )
            session.run(
                f"""
                CREATE VECTOR INDEX {name} IF NOT EXISTS
                FOR (n:{NODE_LABEL})
                ON (n.{EMBEDDING_PROPERTY})
                OPTIONS {{
                    indexConfig: {{
                        `vector.dimensions`: $dimensions,
                        `vector.similarity_function`: 'cosine'
                    }}
                }}
                """,
                dimensions=dimensions,
            )
        logger.info("Vector index '%s' initialized (%d dimensions)", name, dimensions)

    def upsert(self, entries: list[IndexEntry]) -> int:
        """Write entries as one batch, overwriting by id. Returns count written."""
        if not entries:
            return 0

        rows = [self._row(entry) for entry in entries]
        with self._session("upsert") as session:
            session.execute_write(self._merge_rows, rows)

        logger.info("Upserted %d entries into '%s'", len(entries), self.index_name)
        return len(entries)

    def replace_source(self, source: str, entries: list[IndexEntry]) -> int:
        """Replace every entry of ``source`` with ``entries`` in one transaction.

        Entries stored for the source whose id is not in ``entries`` are
        deleted before the batch is merged. Returns the number removed.
        """
        for entry in entries:
            if entry.source != source:
                raise ValueError(
                    f"Entry {entry.id} belongs to '{entry.source}', not '{source}'"
                )

        rows = [self._row(entry) for entry in entries]
        with self._session("replace") as session:
            removed = session.execute_write(self._replace_rows, source, rows)

        logger.info(
            "Replaced '%s': %d entries written, %d stale removed",
            source,
            len(rows),
            removed,
        )
        return removed

    def delete_source(self, source: str) -> int:
        """Delete all entries of a source. Returns count deleted."""
        with self._session("delete") as session:
            result = session.run(
                f"""
                MATCH (c:{NODE_LABEL} {{source: $source}})
                DETACH DELETE c
                RETURN count(c) AS total
                """,
                source=source,
            )
            record = result.single()
            count = record["total"] if record else 0

        logger.info("Deleted %d entries of '%s'", count, source)
        return count

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        embedding_model: str | None = None,
    ) -> list[SearchMatch]:
        """Search vector index by cosine similarity.

        When ``embedding_model`` is given, entries stored with a different
        model are skipped; entries with no recorded model are kept. Raises
        VectorStoreError if Neo4j is unreachable or the index does not exist.
        """
        with self._session("search") as session:
            result = session.run(
                f"""
                CALL db.index.vector.queryNodes($index_name, $top_k, $embedding)
                YIELD node, score
                WHERE $embedding_model IS NULL
                   OR coalesce(node.embedding_model, '') IN ['', $embedding_model]
                RETURN node.id AS id,
                       node.text AS text,
                       node.source AS source,
                       node.chunk_index AS chunk_index,
                       score
                ORDER BY score DESC
                """,
                index_name=self.index_name,
                top_k=top_k,
                embedding=query_embedding,
                embedding_model=embedding_model,
            )

            results = []
            for i, record in enumerate(result):
                results.append(
                    SearchMatch(
                        id=record["id"] or "",
                        text=record["text"] or "",
                        source=record["source"] or "",
                        chunk_index=record["chunk_index"] or 0,
                        score=record["score"],
                        rank=i + 1,
                    )
                )

        return results

    def delete_all(self) -> int:
        """Delete all chunk nodes. Returns count deleted."""
        with self._session("clear") as session:
            result = session.run(
                f"""
                MATCH (c:{NODE_LABEL})
                DETACH DELETE c
                RETURN count(c) AS total
                """
            )
            record = result.single()
            count = record["total"] if record else 0

        logger.info("Deleted %d chunks from vector store", count)
        return count

    def count(self) -> int:
        """Return total number of chunks."""
        with self._session("count") as session:
            result = session.run(f"MATCH (c:{NODE_LABEL}) RETURN count(c) AS total")
            record = result.single()
            return record["total"] if record else 0

    def count_by_source(self, source: str) -> int:
        with self._session("count") as session:
            result = session.run(
                f"MATCH (c:{NODE_LABEL} {{source: $source}}) RETURN count(c) AS total",
                source=source,
            )
            record = result.single()
            return record["total"] if record else 0

    @staticmethod
    def _row(entry: IndexEntry) -> dict[str, Any]:
        return {
            "id": entry.id,
            "text": entry.text,
            "source": entry.source,
            "chunk_index": entry.chunk_index,
            # null leaves the property unset
            "embedding_model": entry.embedding_model or None,
            "vector": entry.vector,
        }

    @staticmethod
    def _merge_rows(tx: ManagedTransaction, rows: list[dict[str, Any]]) -> None:
        tx.run(_MERGE_ROWS, rows=rows)

    @staticmethod
    def _replace_rows(
        tx: ManagedTransaction, source: str, rows: list[dict[str, Any]]
    ) -> int:
        result = tx.run(
            f"""
            MATCH (c:{NODE_LABEL} {{source: $source}})
            WHERE NOT c.id IN $ids
            DETACH DELETE c
            RETURN count(c) AS removed
            """,
            source=source,
            ids=[row["id"] for row in rows],
        )
        record = result.single()
        removed = record["removed"] if record else 0

        if rows:
            tx.run(_MERGE_ROWS, rows=rows)
        return removed
