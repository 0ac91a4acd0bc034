"""Explicitly constructed service graph.

Provider clients and the Neo4j driver are created once per process by
``build_container`` and passed by reference into every stage. Call
``close``/``aclose`` on shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.config import Settings
from core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from openai import AsyncOpenAI, OpenAI

    from agent.product_agent import ProductAgent
    from generation.synthesizer import Synthesizer
    from ingestion.embedder import Embedder
    from ingestion.pipeline import IngestionPipeline
    from retrieval.retriever import Retriever
    from storage.vector_store import VectorStore
    from workflow.product_workflow import ProductWorkflow

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    openai_client: OpenAI
    async_openai_client: AsyncOpenAI
    vector_store: VectorStore
    embedder: Embedder
    pipeline: IngestionPipeline
    retriever: Retriever
    synthesizer: Synthesizer
    workflow: ProductWorkflow
    agents: dict[str, ProductAgent]

    def close(self) -> None:
        self.vector_store.close()
        self.openai_client.close()
        logger.info("Services closed")

    async def aclose(self) -> None:
        self.close()
        await self.async_openai_client.close()


def build_container(settings: Settings) -> ServiceContainer:
    """Build every service from settings.

    Raises:
        ConfigurationError: a required setting is missing
    """
    settings.validate_required()

    from neo4j import GraphDatabase
    from openai import AsyncOpenAI, OpenAI, OpenAIError

    from agent.product_agent import build_agents
    from generation.synthesizer import Synthesizer
    from ingestion.embedder import Embedder
    from ingestion.pipeline import IngestionPipeline
    from retrieval.retriever import Retriever
    from storage.vector_store import VectorStore
    from workflow.product_workflow import ProductWorkflow

    try:
        # Falls back to the OPENAI_API_KEY environment variable
        openai_client = OpenAI(api_key=settings.openai_api_key or None)
        async_openai_client = AsyncOpenAI(api_key=settings.openai_api_key or None)
    except OpenAIError as e:
        raise ConfigurationError(f"OpenAI client not configured: {e}") from e

    driver = GraphDatabase.driver(
        settings.neo4j_uri, auth=(settings.neo4j_user, settings.neo4j_password)
    )

    vector_store = VectorStore(
        driver=driver,
        index_name=settings.index_name,
        dimensions=settings.embedding_dimensions,
    )
    embedder = Embedder(
        openai_client,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
    )
    pipeline = IngestionPipeline(
        embedder,
        vector_store,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )
    retriever = Retriever(vector_store, embedder)
    synthesizer = Synthesizer(
        openai_client,
        async_openai_client,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
    )
    workflow = ProductWorkflow(retriever, synthesizer)

    logger.info(
        "Services configured (index=%s, embedding=%s, llm=%s)",
        settings.index_name,
        settings.embedding_model,
        settings.llm_model,
    )
    return ServiceContainer(
        settings=settings,
        openai_client=openai_client,
        async_openai_client=async_openai_client,
        vector_store=vector_store,
        embedder=embedder,
        pipeline=pipeline,
        retriever=retriever,
        synthesizer=synthesizer,
        workflow=workflow,
        agents=build_agents(workflow, settings),
    )
