"""
Configuration management for Cognify Server using pydantic-settings

Each section loads from its own environment prefix; CognifyConfig nests them.
"""

import logging
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class LLMConfig(BaseSettings):
    """LLM provider configuration"""

    provider: Literal["openai", "litellm"] = Field(
        default="openai",
        description="LLM provider: 'openai' or 'litellm'"
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="Model name (e.g., 'gpt-4o-mini', or any LiteLLM model string)"
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (required if provider='openai')",
        validation_alias="OPENAI_API_KEY"
    )

    # Triple extraction calls
    extraction_temperature: float = Field(
        default=0.0,
        description="Temperature for triple extraction calls",
        ge=0.0,
        le=2.0
    )
    extraction_max_tokens: int = Field(
        default=4000,
        description="Maximum tokens for a triple extraction response",
        gt=0
    )

    # Topic expansion calls
    topic_temperature: float = Field(
        default=0.7,
        description="Temperature for generating source text from a topic",
        ge=0.0,
        le=2.0
    )
    topic_max_tokens: int = Field(
        default=2000,
        description="Maximum tokens for generated topic text",
        gt=0
    )

    # Node detail explanations
    detail_temperature: float = Field(
        default=0.7,
        description="Temperature for node detail explanations",
        ge=0.0,
        le=2.0
    )
    detail_max_tokens: int = Field(
        default=320,
        description="Maximum tokens for a node detail explanation",
        gt=0
    )

    # Timeouts and retries
    timeout_seconds: int = Field(
        default=30,
        description="Timeout for a single LLM API call in seconds",
        gt=0
    )
    max_retries: int = Field(
        default=2,
        description="Retries after a failed LLM API call (0 disables retrying)",
        ge=0
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNIFY_LLM_",
        env_nested_delimiter="__",
        populate_by_name=True,
    )


class ChunkingConfig(BaseSettings):
    """Word-window chunking of source text"""

    chunk_size: int = Field(
        default=100,
        description="Words per chunk sent to the model",
        gt=0
    )
    overlap: int = Field(
        default=20,
        description="Words shared between consecutive chunks",
        ge=0
    )
    max_chunks: Optional[int] = Field(
        default=None,
        description="Optional cap on the number of chunks processed",
        gt=0
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNIFY_CHUNKING_",
        env_nested_delimiter="__"
    )

    @model_validator(mode='after')
    def warn_on_full_overlap(self) -> 'ChunkingConfig':
        if self.overlap >= self.chunk_size:
            logger.warning(
                f"Chunk overlap ({self.overlap}) >= chunk size ({self.chunk_size}); "
                f"chunks will advance one word at a time"
            )
        return self


class GraphConfig(BaseSettings):
    """Graph construction settings"""

    max_input_chars: int = Field(
        default=50000,
        description="Maximum accepted length of uploaded source text",
        gt=0
    )
    max_predicate_words: int = Field(
        default=3,
        description="Maximum words kept in an edge relation",
        gt=0
    )
    chunk_timeout_seconds: float = Field(
        default=60.0,
        description="Upper bound on one chunk's extraction call, retries included",
        gt=0
    )
    bridge_relation: str = Field(
        default="includes",
        description="Relation used for edges that attach floating nodes to the root"
    )
    stale_build_seconds: float = Field(
        default=600.0,
        description="A building record not refreshed for this long is treated as abandoned",
        gt=0
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNIFY_GRAPH_",
        env_nested_delimiter="__"
    )

    @model_validator(mode='after')
    def warn_on_short_lease(self) -> 'GraphConfig':
        # The lease is refreshed once per chunk
        if self.stale_build_seconds <= self.chunk_timeout_seconds:
            logger.warning(
                f"stale_build_seconds ({self.stale_build_seconds}) <= chunk_timeout_seconds "
                f"({self.chunk_timeout_seconds}); live builds may be taken over"
            )
        return self


class StorageConfig(BaseSettings):
    """Graph record storage"""

    backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Storage backend: 'memory' or 'redis'"
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (backend='redis')"
    )
    key_prefix: str = Field(
        default="cognify",
        description="Prefix for all Redis keys"
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNIFY_STORAGE_",
        env_nested_delimiter="__"
    )


class SystemConfig(BaseSettings):
    """System configuration"""

    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated CORS origins"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    model_config = SettingsConfigDict(
        env_prefix="COGNIFY_SYSTEM_",
        env_nested_delimiter="__"
    )


class CognifyConfig(BaseSettings):
    """
    Main configuration for the Cognify server.
    Uses pydantic-settings for automatic environment variable loading.

    Examples:
        COGNIFY_LLM_PROVIDER=litellm
        COGNIFY_LLM_MODEL=claude-3-5-sonnet-20241022
        COGNIFY_CHUNKING_CHUNK_SIZE=150
        COGNIFY_STORAGE_BACKEND=redis
        OPENAI_API_KEY=sk-...
    """

    llm: LLMConfig = Field(default_factory=LLMConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    def validate_api_keys(self) -> None:
        """
        Validate API key requirements based on provider.

        Raises:
            ValueError: If the configured provider needs a key that is missing
        """
        if self.llm.provider == "litellm":
            # LiteLLM picks up provider keys from the environment itself
            logger.info(f"Using LiteLLM with model: {self.llm.model}")
            return
        if self.llm.provider == "openai" and not self.llm.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY is required when using llm provider='openai'. "
                "Set it with: export OPENAI_API_KEY=your-key"
            )

    def __repr__(self) -> str:
        """String representation (masks API keys)"""
        config_dict = self.model_dump()
        key = config_dict.get("llm", {}).get("openai_api_key")
        if key:
            config_dict["llm"]["openai_api_key"] = "sk-..." + (key[-4:] if len(key) >= 4 else "***")
        return f"CognifyConfig({config_dict})"
