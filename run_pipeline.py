#!/usr/bin/env python3
"""CLI for the product docs RAG pipeline: ingest documents, ask questions, serve."""

import argparse
import logging
import sys
from pathlib import Path

from core.config import settings
from core.exceptions import ConfigurationError, RAGError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


def _container():
    from core.container import build_container

    return build_container(settings)


def cmd_ingest(args: argparse.Namespace) -> None:
    """Ingest a document or every supported file in a directory."""
    container = _container()
    try:
        pipeline = container.pipeline

        print("Initializing vector index...")
        pipeline.ensure_index()

        target = Path(args.path or settings.rag_docs_dir)
        if target.is_file():
            results = [pipeline.ingest_file(target)]
        else:
            print(f"Ingesting directory: {target}")
            results = pipeline.ingest_directory(target)

        for result in results:
            print(
                f"  Upserted {result.chunk_count} chunks from {result.source_id}"
                f" (removed {result.removed} stale)"
            )

        total = container.vector_store.count()
        print(f"\nDone! {len(results)} documents, total chunks in store: {total}")
    finally:
        container.close()


def cmd_ask(args: argparse.Namespace) -> None:
    """Ask a question using the product workflow."""
    container = _container()
    try:
        print(f"Query: {args.question}")
        result = container.workflow.run(
            {
                "query": args.question,
                "limit": args.limit,
                "tone": args.tone,
                "language": args.language,
            }
        )

        print(f"\nAnswer: {result.answer}")
        if result.snippets:
            print(f"\nSnippets ({len(result.snippets)}):")
            for i, snippet in enumerate(result.snippets, 1):
                preview = snippet[:100].replace("\n", " ")
                print(f"  {i}. {preview}...")
    finally:
        container.close()


def cmd_stats(args: argparse.Namespace) -> None:
    """Show vector store statistics."""
    container = _container()
    try:
        if args.source:
            total = container.vector_store.count_by_source(args.source)
            print(f"Chunks for {args.source}: {total}")
        else:
            total = container.vector_store.count()
            print(f"Total chunks in store: {total}")
    finally:
        container.close()


def cmd_delete(args: argparse.Namespace) -> None:
    """Delete all chunks of one source."""
    container = _container()
    try:
        count = container.vector_store.delete_source(args.source)
        print(f"Deleted {count} chunks of {args.source}")
    finally:
        container.close()


def cmd_clear(args: argparse.Namespace) -> None:
    """Clear all chunks from vector store."""
    container = _container()
    try:
        count = container.vector_store.delete_all()
        print(f"Deleted {count} chunks from vector store")
    finally:
        container.close()


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API."""
    import uvicorn

    from api.app import create_app

    container = _container()
    try:
        uvicorn.run(
            create_app(container),
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
        )
    finally:
        container.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Product Docs RAG CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ingest
    p_ingest = subparsers.add_parser("ingest", help="Ingest documents")
    p_ingest.add_argument(
        "path", nargs="?", help="File or directory (default: RAG_DOCS_DIR)"
    )

    # ask
    p_ask = subparsers.add_parser("ask", help="Ask a question")
    p_ask.add_argument("question", help="Question to ask")
    p_ask.add_argument("--limit", type=int, default=settings.default_limit)
    p_ask.add_argument(
        "--tone", choices=["neutral", "helpful", "executive"], default=settings.default_tone
    )
    p_ask.add_argument("--language", choices=["id", "en"], default=settings.default_language)

    # stats
    p_stats = subparsers.add_parser("stats", help="Show store statistics")
    p_stats.add_argument("--source", help="Count chunks of one source only")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete chunks of one source")
    p_delete.add_argument("source", help="Source id, e.g. data/new-docs/a.md")

    # clear
    subparsers.add_parser("clear", help="Clear all chunks")

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host")
    p_serve.add_argument("--port", type=int)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "ingest": cmd_ingest,
        "ask": cmd_ask,
        "stats": cmd_stats,
        "delete": cmd_delete,
        "clear": cmd_clear,
        "serve": cmd_serve,
    }
    try:
        commands[args.command](args)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)
    except RAGError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
