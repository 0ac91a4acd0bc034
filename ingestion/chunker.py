"""Deterministic markdown-aware text chunker."""

from __future__ import annotations

import re

from core.config import settings
from core.models import Chunk, Document, chunk_id

__all__ = ["chunk_document", "chunk_id", "chunk_text"]

_HEADER_PATTERN = re.compile(r"^(#{2,3})\s+(.+)$")
_SENTENCE_PATTERN = re.compile(r"([.!?]+\s+)")


def chunk_text(
    text: str,
    source_id: str = "",
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> list[Chunk]:
    """Chunk text semantically using markdown structure.

    Strategy:
    1. Split by markdown headers (##, ###) first, keeping the header line
    2. Then by paragraphs (\\n\\n)
    3. If still too large, split by sentences
    4. Tables (lines starting with |) kept as atomic units

    The result depends only on the arguments, so chunk ids derived from
    ``(source_id, index)`` are stable across re-ingestion runs.
    Empty or whitespace-only text yields no chunks.
    """
    if chunk_size is None:
        chunk_size = settings.chunk_size
    if chunk_overlap is None:
        chunk_overlap = settings.chunk_overlap

    if not text.strip():
        return []

    pieces: list[str] = []
    for section in _split_by_headers(text):
        pieces.extend(_chunk_section(section, chunk_size, chunk_overlap))

    return [
        Chunk(source_id=source_id, index=i, text=piece)
        for i, piece in enumerate(pieces)
    ]


def chunk_document(
    document: Document,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> list[Chunk]:
    return chunk_text(
        document.raw_text,
        source_id=document.source_id,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )


def _split_by_headers(text: str) -> list[str]:
    """Split text by markdown headers (## , ### ).

    Each section starts with its header line, so the heading stays
    searchable together with its content.
    """
    sections: list[str] = []
    current: list[str] = []

    for line in text.split("\n"):
        if _HEADER_PATTERN.match(line) and any(part.strip() for part in current):
            sections.append("\n".join(current))
            current = []
        current.append(line)

    if any(part.strip() for part in current):
        sections.append("\n".join(current))

    return sections


def _chunk_section(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Chunk a single section into text pieces."""
    if not text.strip():
        return []

    lines = [line for line in text.split("\n") if line.strip()]
    body = [line for line in lines if not _HEADER_PATTERN.match(line)]
    if body and all(line.strip().startswith("|") for line in body):
        # Keep table as atomic unit
        return [text.strip()]

    chunks: list[str] = []
    current = ""

    for para in text.split("\n\n"):
        para = para.strip()
        if not para:
            continue

        if len(current) + len(para) + 2 <= chunk_size:
            current = f"{current}\n\n{para}" if current else para
            continue

        if current:
            chunks.append(current)
            if chunk_overlap > 0 and len(para) + chunk_overlap + 2 <= chunk_size:
                current = current[-chunk_overlap:] + "\n\n" + para
                continue
            current = ""

        if len(para) <= chunk_size:
            current = para
        else:
            # Paragraph itself is too large - split by sentences
            chunks.extend(_split_by_sentences(para, chunk_size, chunk_overlap))

    if current:
        chunks.append(current)

    return chunks


def _split_by_sentences(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Split text by sentences when paragraph is too large."""
    parts = _SENTENCE_PATTERN.split(text)

    sentences = []
    current = ""
    for i, part in enumerate(parts):
        current += part
        if i % 2 == 1:  # End of sentence marker
            sentences.append(current)
            current = ""
    if current:
        sentences.append(current)

    chunks: list[str] = []
    current_chunk = ""

    for sent in sentences:
        if len(current_chunk) + len(sent) <= chunk_size:
            current_chunk += sent
        elif current_chunk:
            chunks.append(current_chunk.strip())
            if chunk_overlap > 0 and len(sent) + chunk_overlap <= chunk_size:
                current_chunk = current_chunk[-chunk_overlap:] + sent
            else:
                current_chunk = sent
        else:
            # Sentence itself too large - take as-is
            chunks.append(sent.strip())

    if current_chunk.strip():
        chunks.append(current_chunk.strip())

    return chunks
