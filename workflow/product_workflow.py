"""Product workflow: search -> synthesize, with empty-result short-circuit."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from core.exceptions import InvalidRequestError
from core.models import (
    Language,
    RetrievalRequest,
    SynthesisRequest,
    WorkflowRequest,
    WorkflowResult,
)

if TYPE_CHECKING:
    from generation.synthesizer import Synthesizer
    from retrieval.retriever import Retriever

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGES: dict[Language, str] = {
    Language.ID: "Maaf, tidak ditemukan informasi produk yang relevan untuk pertanyaan Anda.",
    Language.EN: "Sorry, no relevant product information found for your question.",
}


class WorkflowStage(str, Enum):
    INIT = "init"
    SEARCHED = "searched"
    DONE = "done"


@dataclass
class WorkflowState:
    """State passed between the workflow nodes."""

    request: WorkflowRequest
    stage: WorkflowStage = WorkflowStage.INIT
    snippets: list[str] = field(default_factory=list)
    answer: str = ""

    def result(self) -> WorkflowResult:
        if self.stage is not WorkflowStage.DONE:
            raise RuntimeError(f"Workflow not finished (stage={self.stage.value})")
        return WorkflowResult(
            answer=self.answer, snippets=self.snippets, query=self.request.query
        )


def validate_workflow(request: WorkflowRequest | dict[str, Any]) -> WorkflowRequest:
    if isinstance(request, WorkflowRequest):
        return request
    try:
        return WorkflowRequest.model_validate(request)
    except ValidationError as e:
        raise InvalidRequestError.from_validation("Invalid workflow request", e) from e


class ProductWorkflow:
    """Two-node pipeline answering product questions from indexed docs.

    Flow: INIT -> search -> SEARCHED -> [synthesize] -> DONE
    Synthesis is skipped when retrieval finds nothing; the answer is then
    the localized no-results message and snippets are empty.
    """

    def __init__(self, retriever: Retriever, synthesizer: Synthesizer):
        self.retriever = retriever
        self.synthesizer = synthesizer

    def start(self, request: WorkflowRequest | dict[str, Any]) -> WorkflowState:
        return WorkflowState(request=validate_workflow(request))

    def search(self, state: WorkflowState) -> WorkflowState:
        """Run the retrieval stage."""
        self._expect(state, WorkflowStage.INIT)
        retrieval = RetrievalRequest(query=state.request.query, limit=state.request.limit)

        state.snippets = self.retriever.run(retrieval).snippets
        state.stage = WorkflowStage.SEARCHED
        logger.info("Search returned %d snippets", len(state.snippets))
        return state

    def should_synthesize(self, state: WorkflowState) -> bool:
        return bool(state.snippets)

    def short_circuit(self, state: WorkflowState) -> WorkflowState:
        """Finish without synthesis when nothing was found."""
        self._expect(state, WorkflowStage.SEARCHED)
        state.answer = NO_RESULTS_MESSAGES[state.request.language]
        state.snippets = []
        state.stage = WorkflowStage.DONE
        logger.info("No snippets found, skipping synthesis")
        return state

    def synthesize(self, state: WorkflowState) -> WorkflowState:
        """Run the synthesis stage on the retrieved snippets."""
        self._expect(state, WorkflowStage.SEARCHED)
        state.answer = self.synthesizer.synthesize(self._synthesis_request(state))
        state.stage = WorkflowStage.DONE
        logger.info("Generated answer (%d chars)", len(state.answer))
        return state

    def run(self, request: WorkflowRequest | dict[str, Any]) -> WorkflowResult:
        """Execute the full workflow and return the single result record."""
        state = self.start(request)
        state = self.search(state)

        if self.should_synthesize(state):
            state = self.synthesize(state)
        else:
            state = self.short_circuit(state)

        return state.result()

    async def stream(self, request: WorkflowRequest | dict[str, Any]) -> AsyncIterator[str]:
        """Yield the answer as fragments.

        Retrieval runs in a worker thread; the short-circuit message is
        yielded as a single fragment.
        """
        state = self.start(request)
        state = await asyncio.to_thread(self.search, state)

        if not self.should_synthesize(state):
            yield self.short_circuit(state).answer
            return

        fragments = self.synthesizer.stream(self._synthesis_request(state))
        try:
            async for fragment in fragments:
                yield fragment
        finally:
            await fragments.aclose()

    @staticmethod
    def _synthesis_request(state: WorkflowState) -> SynthesisRequest:
        try:
            return SynthesisRequest(
                question=state.request.query,
                snippets=state.snippets,
                tone=state.request.tone,
                language=state.request.language,
                instructions=state.request.instructions,
            )
        except ValidationError as e:
            raise InvalidRequestError.from_validation("Invalid synthesis input", e) from e

    @staticmethod
    def _expect(state: WorkflowState, stage: WorkflowStage) -> None:
        if state.stage is not stage:
            raise InvalidRequestError(
                f"Workflow node expects stage '{stage.value}', got '{state.stage.value}'"
            )
