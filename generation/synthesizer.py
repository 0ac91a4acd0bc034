"""Synthesis stage: rewrite retrieved snippets into one product answer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import openai
from pydantic import ValidationError

from core.config import settings
from core.exceptions import GenerationError, InvalidRequestError
from core.models import Language, SynthesisRequest, SynthesisResult, Tone

if TYPE_CHECKING:
    from openai import AsyncOpenAI, OpenAI

logger = logging.getLogger(__name__)

TONE_HINTS: dict[Tone, str] = {
    Tone.NEUTRAL: "neutral, factual tone",
    Tone.HELPFUL: "friendly, concise, helpful tone",
    Tone.EXECUTIVE: "concise executive summary tone",
}

LANGUAGE_HINTS: dict[Language, str] = {
    Language.ID: "clear and concise Bahasa Indonesia",
    Language.EN: "clear and concise English",
}

PROMPT_TEMPLATE = """You are a product assistant. The user asked: "{question}".
You are given RAG snippets (may be noisy/duplicated). Produce a short, well-structured answer in {language_hint} with {tone_hint}.
Rules:
- Keep only facts implied by the snippets.
- Remove noise and duplication.
- Use short paragraphs or bullet points where helpful.
- If the snippets conflict, state the most likely interpretation.
- End with 1-2 actionable suggestions if relevant.

Snippets:
{snippets}
"""


def validate_synthesis(request: SynthesisRequest | dict[str, Any]) -> SynthesisRequest:
    if isinstance(request, SynthesisRequest):
        return request
    try:
        return SynthesisRequest.model_validate(request)
    except ValidationError as e:
        raise InvalidRequestError.from_validation("Invalid synthesis request", e) from e


def build_prompt(request: SynthesisRequest) -> str:
    """Build the generation prompt: instructions, question, hints, then numbered snippets."""
    numbered = "\n\n".join(
        f"({i}) {snippet}" for i, snippet in enumerate(request.snippets, start=1)
    )
    prompt = PROMPT_TEMPLATE.format(
        question=request.question,
        language_hint=LANGUAGE_HINTS[request.language],
        tone_hint=TONE_HINTS[request.tone],
        snippets=numbered,
    )
    if request.instructions.strip():
        prompt = f"{request.instructions.strip()}\n\n{prompt}"
    return prompt


class Synthesizer:
    """Generates the answer text with the chat model.

    Provider errors surface as GenerationError; there is no fallback text.
    """

    def __init__(
        self,
        openai_client: OpenAI | None = None,
        async_openai_client: AsyncOpenAI | None = None,
        model: str | None = None,
        temperature: float | None = None,
    ):
        if openai_client is None:
            openai_client = openai.OpenAI(api_key=settings.openai_api_key)

        self.openai_client = openai_client
        self._async_openai_client = async_openai_client
        self.model = model or settings.llm_model
        self.temperature = (
            settings.llm_temperature if temperature is None else temperature
        )

    @property
    def async_openai_client(self) -> AsyncOpenAI:
        """Lazy async client for streaming."""
        if self._async_openai_client is None:
            self._async_openai_client = openai.AsyncOpenAI(api_key=settings.openai_api_key)
        return self._async_openai_client

    def _messages(self, request: SynthesisRequest) -> list[dict[str, str]]:
        return [{"role": "user", "content": build_prompt(request)}]

    def synthesize(self, request: SynthesisRequest | dict[str, Any]) -> str:
        """Return the model's full answer verbatim.

        Raises:
            InvalidRequestError: empty question or no snippets
            GenerationError: provider failure
        """
        request = validate_synthesis(request)

        logger.info(
            "Generating answer for question: %s (%d snippets)",
            request.question,
            len(request.snippets),
        )
        try:
            response = self.openai_client.chat.completions.create(
                model=self.model,
                messages=self._messages(request),
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            logger.error("Error generating answer: %s", e)
            raise GenerationError(f"Generation provider error: {e}", {"model": self.model}) from e

        answer = response.choices[0].message.content or ""
        logger.info("Generated answer: %s", answer[:100])
        return answer

    def run(self, request: SynthesisRequest | dict[str, Any]) -> SynthesisResult:
        return SynthesisResult(answer=self.synthesize(request))

    async def stream(self, request: SynthesisRequest | dict[str, Any]) -> AsyncIterator[str]:
        """Yield answer fragments in production order.

        Closing the iterator closes the provider stream.
        """
        request = validate_synthesis(request)

        try:
            response = await self.async_openai_client.chat.completions.create(
                model=self.model,
                messages=self._messages(request),
                temperature=self.temperature,
                stream=True,
            )
        except openai.OpenAIError as e:
            logger.error("Error starting answer stream: %s", e)
            raise GenerationError(f"Generation provider error: {e}", {"model": self.model}) from e

        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                fragment = chunk.choices[0].delta.content
                if fragment:
                    yield fragment
        except openai.OpenAIError as e:
            logger.error("Answer stream interrupted: %s", e)
            raise GenerationError(f"Generation stream interrupted: {e}", {"model": self.model}) from e
        finally:
            await response.close()
