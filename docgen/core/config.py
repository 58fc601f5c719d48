"""Configuration management for DocGen Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    DOCGEN_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Supabase configuration (optional - persisted tiers degrade to in-memory)
    SUPABASE_URL: str | None = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )

    # Generation providers (a missing key removes the provider from the chain)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    PROVIDER_ORDER: str = Field(
        default="anthropic,openai",
        description="Comma-separated provider dispatch order (primary first)",
    )
    ANTHROPIC_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929", description="Anthropic generation model"
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI generation model")
    PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=60.0, description="Per-call timeout before a provider is abandoned"
    )

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Response cache
    RESPONSE_CACHE_CAPACITY: int = Field(default=100, description="Max cached responses")
    RESPONSE_CACHE_TTL_SECONDS: float = Field(default=300.0, description="Response cache TTL")
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60.0, description="Interval between expired-entry sweeps"
    )

    # Embedding cache
    EMBEDDING_CACHE_CAPACITY: int = Field(default=1000, description="Max cached embeddings")
    EMBEDDING_CACHE_TTL_SECONDS: float = Field(
        default=24 * 60 * 60, description="Embedding cache TTL"
    )

    # Research cache
    RESEARCH_STALENESS_DAYS: int = Field(
        default=30, description="Age after which a research record is recomputed"
    )

    # Retrieval
    RETRIEVAL_MATCH_COUNT: int = Field(default=5, description="Knowledge chunks per query")
    RETRIEVAL_SIMILARITY_THRESHOLD: float = Field(
        default=0.7, description="Minimum similarity for knowledge chunks"
    )
    RESEARCH_MATCH_COUNT: int = Field(default=3, description="Research records per query")
    RESEARCH_SIMILARITY_THRESHOLD: float = Field(
        default=0.6, description="Minimum similarity for research records"
    )

    # Usage tracking
    LOG_LLM_USAGE: bool = Field(
        default=True, description="Write per-call usage rows to llm_usage_log when Supabase is set"
    )
    LOG_KNOWLEDGE_USAGE: bool = Field(
        default=True, description="Write per-retrieval rows to knowledge_usage when Supabase is set"
    )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    @property
    def provider_flags(self) -> dict[str, bool]:
        """Provider availability flags, keyed by provider name."""
        return {
            "anthropic": bool(self.ANTHROPIC_API_KEY),
            "openai": bool(self.OPENAI_API_KEY),
        }

    @property
    def provider_order(self) -> list[str]:
        return [name.strip().lower() for name in self.PROVIDER_ORDER.split(",") if name.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    return Settings()
