"""Product agent: the unit addressed by ``/agents/{agent_id}``."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from core.config import settings as default_settings
from core.exceptions import AgentNotFoundError, InvalidRequestError
from core.models import Language, WorkflowRequest, WorkflowResult
from workflow.product_workflow import validate_workflow

if TYPE_CHECKING:
    from core.config import Settings
    from workflow.product_workflow import ProductWorkflow

logger = logging.getLogger(__name__)

PRODUCT_AGENT_ID = "product"

# Request fields a caller may override through ``meta``
META_OVERRIDES = ("limit", "tone", "language")

MAX_RECOMMENDATIONS = 5

REFUSAL_MESSAGES: dict[Language, str] = {
    Language.ID: "Maaf, saya khusus untuk rekomendasi produk. Bisakah Anda bertanya tentang produk saja?",
    Language.EN: "Sorry, I only handle product recommendations. Could you ask about products instead?",
}

PRODUCT_INSTRUCTIONS = """You are a specialized product recommendation assistant.
Your ONLY role is to provide product recommendations and answer product-related questions.
If the question is not about products (weather, general knowledge, personal advice, etc.), do not answer it; reply exactly: "{refusal}"
Recommend at most {max_recommendations} products per answer. Keep responses concise but informative."""


def product_instructions(language: Language) -> str:
    return PRODUCT_INSTRUCTIONS.format(
        refusal=REFUSAL_MESSAGES[language],
        max_recommendations=MAX_RECOMMENDATIONS,
    )


class ProductAgent:
    """Answers product questions through the product workflow.

    Every request carries the agent's instructions into synthesis: product
    topics only, a fixed localized refusal for anything else, and at most
    ``MAX_RECOMMENDATIONS`` products per answer.
    """

    def __init__(
        self,
        agent_id: str,
        name: str,
        workflow: ProductWorkflow,
        limit: int = 5,
        tone: str = "helpful",
        language: str = "id",
    ):
        self.agent_id = agent_id
        self.name = name
        self.workflow = workflow
        self.defaults: dict[str, Any] = {"limit": limit, "tone": tone, "language": language}

    def build_request(
        self, prompt: str, meta: dict[str, Any] | None = None
    ) -> WorkflowRequest:
        """Merge agent defaults with ``meta`` overrides into a workflow request.

        Raises:
            InvalidRequestError: empty prompt or invalid override
        """
        if not prompt or not prompt.strip():
            raise InvalidRequestError("Prompt is required", field="prompt")

        fields = dict(self.defaults)
        for key in META_OVERRIDES:
            if meta and meta.get(key) is not None:
                fields[key] = meta[key]
        fields["query"] = prompt.strip()

        request = validate_workflow(fields)
        return request.model_copy(
            update={"instructions": product_instructions(request.language)}
        )

    def generate(self, prompt: str, meta: dict[str, Any] | None = None) -> WorkflowResult:
        request = self.build_request(prompt, meta)
        logger.info("Agent '%s' generating for: %s", self.agent_id, request.query)
        return self.workflow.run(request)

    def stream(
        self, prompt: str, meta: dict[str, Any] | None = None
    ) -> AsyncIterator[str]:
        """Validate eagerly, then return the lazy fragment stream."""
        request = self.build_request(prompt, meta)
        logger.info("Agent '%s' streaming for: %s", self.agent_id, request.query)
        return self.workflow.stream(request)


def build_agents(
    workflow: ProductWorkflow, settings: Settings | None = None
) -> dict[str, ProductAgent]:
    """Agents served over HTTP, keyed by id."""
    settings = settings or default_settings
    product = ProductAgent(
        agent_id=PRODUCT_AGENT_ID,
        name="Product Agent",
        workflow=workflow,
        limit=settings.default_limit,
        tone=settings.default_tone,
        language=settings.default_language,
    )
    return {product.agent_id: product}


def get_agent(agents: dict[str, ProductAgent], agent_id: str) -> ProductAgent:
    try:
        return agents[agent_id]
    except KeyError:
        raise AgentNotFoundError(agent_id) from None
