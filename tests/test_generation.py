"""Unit tests for the synthesis stage."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, Mock

import openai
import pytest

from conftest import chat_response
from core.exceptions import GenerationError, InvalidRequestError
from core.models import Language, SynthesisRequest, Tone
from generation.synthesizer import Synthesizer, build_prompt, validate_synthesis


class FakeStream:
    """Async iterable of chat completion chunks with a closable handle."""

    def __init__(self, fragments, fail_after=None):
        self.fragments = fragments
        self.fail_after = fail_after
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i == self.fail_after:
                raise openai.OpenAIError("connection reset")
            if fragment is None:
                yield Mock(choices=[])
            else:
                yield Mock(choices=[Mock(delta=Mock(content=fragment))])


@pytest.fixture
def request_en():
    return SynthesisRequest(
        question="How long does the battery last?",
        snippets=["Battery lasts 10 hours.", "Battery: 10h typical use."],
        tone=Tone.EXECUTIVE,
        language=Language.EN,
    )


def _synthesizer(client=None, async_client=None):
    return Synthesizer(
        openai_client=client or MagicMock(),
        async_openai_client=async_client or MagicMock(),
        model="gpt-4o-mini",
        temperature=0.3,
    )


class TestBuildPrompt:
    def test_prompt_contains_question_and_hints(self, request_en):
        prompt = build_prompt(request_en)

        assert '"How long does the battery last?"' in prompt
        assert "executive summary tone" in prompt
        assert "clear and concise English" in prompt

    def test_snippets_are_numbered_in_order(self, request_en):
        prompt = build_prompt(request_en)

        assert "(1) Battery lasts 10 hours.\n\n(2) Battery: 10h typical use." in prompt

    def test_default_hints_are_helpful_indonesian(self):
        prompt = build_prompt(SynthesisRequest(question="Harga?", snippets=["Rp 100.000"]))

        assert "friendly, concise, helpful tone" in prompt
        assert "Bahasa Indonesia" in prompt

    def test_instructions_lead_the_prompt(self):
        request = SynthesisRequest(
            question="Cuaca hari ini?",
            snippets=["Rp 100.000"],
            instructions="Only answer product questions.",
        )

        prompt = build_prompt(request)

        assert prompt.startswith("Only answer product questions.\n\nYou are a product assistant.")

    def test_no_instructions_by_default(self, request_en):
        assert build_prompt(request_en).startswith("You are a product assistant.")


class TestValidateSynthesis:
    def test_empty_snippets_rejected(self):
        with pytest.raises(InvalidRequestError, match="snippets"):
            validate_synthesis({"question": "price?", "snippets": []})

    def test_empty_question_rejected(self):
        with pytest.raises(InvalidRequestError, match="question"):
            validate_synthesis({"question": "", "snippets": ["x"]})

    def test_blank_question_rejected(self):
        with pytest.raises(InvalidRequestError, match="question"):
            validate_synthesis({"question": "  ", "snippets": ["x"]})

    def test_unknown_tone_rejected(self):
        with pytest.raises(InvalidRequestError, match="tone"):
            validate_synthesis({"question": "q", "snippets": ["x"], "tone": "casual"})


class TestSynthesize:
    def test_answer_returned_verbatim(self, request_en):
        client = MagicMock()
        client.chat.completions.create.return_value = chat_response(
            "  Battery lasts about 10 hours.\n"
        )

        answer = _synthesizer(client).synthesize(request_en)

        assert answer == "  Battery lasts about 10 hours.\n"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][0]["role"] == "user"
        assert "(1) Battery lasts 10 hours." in kwargs["messages"][0]["content"]

    def test_none_content_becomes_empty(self, request_en):
        client = MagicMock()
        client.chat.completions.create.return_value = chat_response(None)

        assert _synthesizer(client).run(request_en).answer == ""

    def test_provider_error_raises_generation_error(self, request_en):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.OpenAIError("boom")

        with pytest.raises(GenerationError, match="boom"):
            _synthesizer(client).synthesize(request_en)

    def test_invalid_request_does_not_call_provider(self):
        client = MagicMock()

        with pytest.raises(InvalidRequestError):
            _synthesizer(client).synthesize({"question": "q", "snippets": []})

        client.chat.completions.create.assert_not_called()


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_yields_fragments_in_order(self, request_en):
        stream = FakeStream(["Battery ", None, "", "lasts 10h."])
        async_client = MagicMock()
        async_client.chat.completions.create = AsyncMock(return_value=stream)

        fragments = [f async for f in _synthesizer(async_client=async_client).stream(request_en)]

        assert fragments == ["Battery ", "lasts 10h."]
        assert async_client.chat.completions.create.call_args.kwargs["stream"] is True
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_start_failure(self, request_en):
        async_client = MagicMock()
        async_client.chat.completions.create = AsyncMock(
            side_effect=openai.OpenAIError("unavailable")
        )

        with pytest.raises(GenerationError):
            async for _ in _synthesizer(async_client=async_client).stream(request_en):
                pass

    @pytest.mark.asyncio
    async def test_stream_interrupted_mid_way(self, request_en):
        stream = FakeStream(["Battery ", "lasts"], fail_after=1)
        async_client = MagicMock()
        async_client.chat.completions.create = AsyncMock(return_value=stream)

        received = []
        with pytest.raises(GenerationError, match="interrupted"):
            async for fragment in _synthesizer(async_client=async_client).stream(request_en):
                received.append(fragment)

        assert received == ["Battery "]
        stream.close.assert_awaited_once()
