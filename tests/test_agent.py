"""Unit tests for the product agent and agent registry."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from core.config import Settings
from core.exceptions import AgentNotFoundError, InvalidRequestError
from core.models import Language, Tone, WorkflowResult
from agent.product_agent import (
    PRODUCT_AGENT_ID,
    REFUSAL_MESSAGES,
    ProductAgent,
    build_agents,
    get_agent,
)


@pytest.fixture
def workflow():
    wf = MagicMock()
    wf.run.return_value = WorkflowResult(answer="About 10 hours.", snippets=["x"], query="q")
    return wf


@pytest.fixture
def agent(workflow):
    return ProductAgent(PRODUCT_AGENT_ID, "Product Agent", workflow)


class TestBuildRequest:
    def test_defaults(self, agent):
        request = agent.build_request("  battery life?  ")

        assert request.query == "battery life?"
        assert request.limit == 5
        assert request.tone is Tone.HELPFUL
        assert request.language is Language.ID

    def test_meta_overrides(self, agent):
        request = agent.build_request(
            "battery?", {"limit": 3, "tone": "executive", "language": "en", "other": 1}
        )

        assert request.limit == 3
        assert request.tone is Tone.EXECUTIVE
        assert request.language is Language.EN

    def test_none_meta_values_ignored(self, agent):
        request = agent.build_request("battery?", {"limit": None, "tone": None})

        assert request.limit == 5
        assert request.tone is Tone.HELPFUL

    @pytest.mark.parametrize("prompt", ["", "   ", None])
    def test_prompt_required(self, agent, prompt):
        with pytest.raises(InvalidRequestError, match="Prompt is required"):
            agent.build_request(prompt)

    def test_invalid_tone(self, agent):
        with pytest.raises(InvalidRequestError, match="tone"):
            agent.build_request("battery?", {"tone": "casual"})

    def test_invalid_limit(self, agent):
        with pytest.raises(InvalidRequestError, match="limit"):
            agent.build_request("battery?", {"limit": 100})

    def test_product_policy_instructions(self, agent):
        instructions = agent.build_request("cuaca hari ini?").instructions

        assert REFUSAL_MESSAGES[Language.ID] in instructions
        assert "at most 5 products" in instructions
        assert "ONLY role" in instructions

    def test_refusal_follows_language(self, agent):
        instructions = agent.build_request("weather?", {"language": "en"}).instructions

        assert REFUSAL_MESSAGES[Language.EN] in instructions
        assert REFUSAL_MESSAGES[Language.ID] not in instructions

    def test_refusal_covers_all_languages(self):
        assert set(REFUSAL_MESSAGES) == set(Language)


class TestAgentCalls:
    def test_generate_runs_workflow(self, agent, workflow):
        result = agent.generate("battery?", {"language": "en"})

        assert result.answer == "About 10 hours."
        request = workflow.run.call_args[0][0]
        assert request.language is Language.EN
        assert REFUSAL_MESSAGES[Language.EN] in request.instructions

    def test_stream_validates_before_streaming(self, agent, workflow):
        with pytest.raises(InvalidRequestError):
            agent.stream("", None)

        workflow.stream.assert_not_called()

    def test_stream_returns_workflow_stream(self, agent, workflow):
        sentinel = object()
        workflow.stream.return_value = sentinel

        assert agent.stream("battery?") is sentinel


class TestRegistry:
    def test_build_agents_uses_settings_defaults(self, workflow):
        settings = Settings(
            _env_file=None, default_limit=8, default_tone="neutral", default_language="en"
        )

        agents = build_agents(workflow, settings)

        assert list(agents) == [PRODUCT_AGENT_ID]
        request = agents[PRODUCT_AGENT_ID].build_request("q")
        assert request.limit == 8
        assert request.tone is Tone.NEUTRAL
        assert request.language is Language.EN

    def test_get_agent(self, agent):
        assert get_agent({"product": agent}, "product") is agent

    def test_get_unknown_agent(self, agent):
        with pytest.raises(AgentNotFoundError, match="Agent sales not found"):
            get_agent({"product": agent}, "sales")
