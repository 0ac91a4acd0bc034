"""Document loader for the product docs directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from core.exceptions import IngestionError
from core.models import Document

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".md", ".txt", ".json", ".csv"})


def is_supported(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS


def source_id_for(path: Path, base_dir: str | Path | None = None) -> str:
    """Stable source identifier: POSIX path relative to ``base_dir`` (default cwd)."""
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    try:
        rel = os.path.relpath(path.resolve(), base.resolve())
    except ValueError:
        # Different drive on Windows
        rel = str(path)
    return Path(rel).as_posix()


def load_file(file_path: str | Path) -> str:
    """Load a text document.

    Supports: MD, TXT, JSON, CSV (read as UTF-8 text, no parsing).

    Raises:
        FileNotFoundError: file does not exist
        ValueError: extension is not supported
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file type '{path.suffix}', expected one of "
            f"{sorted(SUPPORTED_EXTENSIONS)}"
        )

    logger.info("Loading %s file: %s", path.suffix.lower().lstrip("."), file_path)
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_document(
    file_path: str | Path, base_dir: str | Path | None = None
) -> Document:
    """Read one document.

    Raises:
        IngestionError: missing, unreadable, non-UTF-8 or unsupported file
    """
    path = Path(file_path)
    source_id = source_id_for(path, base_dir)
    try:
        raw_text = load_file(path)
    except (OSError, ValueError) as e:
        # UnicodeDecodeError is a ValueError
        raise IngestionError(f"Cannot read document: {e}", source_id) from e
    return Document(source_id=source_id, raw_text=raw_text)


def iter_documents(
    docs_dir: str | Path, base_dir: str | Path | None = None
) -> Iterator[Document]:
    """Yield supported documents from ``docs_dir`` in sorted name order.

    Only regular files directly inside the directory are read; the
    directory is created when missing.
    """
    directory = Path(docs_dir)
    directory.mkdir(parents=True, exist_ok=True)

    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if not is_supported(path):
            logger.debug("Skipping unsupported entry: %s", path.name)
            continue
        yield load_document(path, base_dir)
