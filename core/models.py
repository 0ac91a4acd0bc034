"""Data models for the product docs RAG pipeline."""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

MIN_LIMIT = 1
MAX_LIMIT = 50
DEFAULT_LIMIT = 5

# Surrounding whitespace is dropped; a blank string counts as empty
NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def chunk_id(source_id: str, index: int) -> str:
    """Stable index entry id for the chunk at ``index`` of ``source_id``."""
    return hashlib.sha1(f"{source_id}#{index}".encode("utf-8")).hexdigest()


class Tone(str, Enum):
    NEUTRAL = "neutral"
    HELPFUL = "helpful"
    EXECUTIVE = "executive"


class Language(str, Enum):
    ID = "id"
    EN = "en"


class Document(BaseModel):
    """A source document as read from disk."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1)
    raw_text: str


class Chunk(BaseModel):
    """A contiguous slice of a document, the minimal retrievable unit."""

    source_id: str
    index: int = Field(ge=0)
    text: str

    @property
    def id(self) -> str:
        return chunk_id(self.source_id, self.index)


class IndexEntry(BaseModel):
    """A chunk paired with its embedding, as stored in the vector index."""

    id: str
    vector: list[float]
    text: str
    source: str
    chunk_index: int = Field(ge=0)
    embedding_model: str = ""

    @classmethod
    def from_chunk(
        cls, chunk: Chunk, vector: list[float], embedding_model: str = ""
    ) -> IndexEntry:
        return cls(
            id=chunk.id,
            vector=vector,
            text=chunk.text,
            source=chunk.source_id,
            chunk_index=chunk.index,
            embedding_model=embedding_model,
        )


class SearchMatch(BaseModel):
    """A single nearest-neighbour match from the vector store."""

    id: str
    text: str
    source: str = ""
    chunk_index: int = 0
    score: float = 0.0
    rank: int = 0


class IngestResult(BaseModel):
    source_id: str
    chunk_count: int = 0
    removed: int = 0


class RetrievalRequest(BaseModel):
    query: NonBlankStr
    limit: int = Field(default=DEFAULT_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT)


class RetrievalResult(BaseModel):
    snippets: list[str] = Field(default_factory=list)


class SynthesisRequest(BaseModel):
    """Input of the synthesis stage.

    ``instructions`` is an optional role preamble placed ahead of the
    answer rules (e.g. an agent's scope and refusal policy).
    """

    question: NonBlankStr
    snippets: list[str] = Field(min_length=1)
    tone: Tone = Tone.HELPFUL
    language: Language = Language.ID
    instructions: str = ""


class SynthesisResult(BaseModel):
    answer: str


class WorkflowRequest(BaseModel):
    query: NonBlankStr
    limit: int = Field(default=DEFAULT_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT)
    tone: Tone = Tone.HELPFUL
    language: Language = Language.ID
    instructions: str = ""


class WorkflowResult(BaseModel):
    """Final answer with the snippets it was grounded on."""

    answer: str
    snippets: list[str] = Field(default_factory=list)
    query: str = ""
