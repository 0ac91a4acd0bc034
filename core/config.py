"""Product docs RAG configuration via Pydantic settings."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(
        default=1536,
        validation_alias=AliasChoices(
            "embedding_dimensions", "EMBEDDING_DIM", "EMBEDDING_DIMENSIONS"
        ),
    )
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.3

    # Neo4j (vector store connection is required)
    neo4j_uri: str = ""
    neo4j_user: str = "neo4j"
    neo4j_password: str = ""
    index_name: str = "product_docs"

    # Ingestion
    rag_docs_dir: str = "./data/new-docs"
    chunk_size: int = 800
    chunk_overlap: int = 100

    # Query defaults
    default_limit: int = 5
    default_tone: str = "helpful"
    default_language: str = "id"

    # Streaming / HTTP
    stream_buffer_size: int = 32
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def validate_required(self) -> None:
        """Raise ConfigurationError if a required connection setting is missing."""
        missing = [
            env_name
            for env_name, value in (
                ("NEO4J_URI", self.neo4j_uri),
                ("EMBEDDING_MODEL", self.embedding_model),
                ("LLM_MODEL", self.llm_model),
            )
            if not value.strip()
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )


settings = Settings()
