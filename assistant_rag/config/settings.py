from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_API_KEYS = frozenset({"your-api-key-here", "dummy-key-for-testing"})


def is_configured_key(value: str) -> bool:
    """Return True when an API key looks like a real credential.

    Empty strings and the placeholders shipped in example .env files
    do not count as configured.
    """
    cleaned = value.strip().strip('"').strip("'")
    if not cleaned:
        return False
    if cleaned in PLACEHOLDER_API_KEYS or cleaned.startswith("your_"):
        return False
    return True


class Settings(BaseSettings):
    ollama_host: str = Field(default="http://localhost:11434", validation_alias="OLLAMA_HOST")
    ollama_model: str = Field(
        default="gemma2:2b",
        validation_alias="OLLAMA_MODEL",
        description="Local fallback chat model",
    )
    ollama_embedding_model: str = Field(default="nomic-embed-text:latest", validation_alias="OLLAMA_EMBEDDING_MODEL")
    embedding_base_url: str = Field(
        default="",
        validation_alias="EMBEDDING_BASE_URL",
        description="OpenAI-compatible embeddings endpoint; defaults to {OLLAMA_HOST}/v1",
    )
    embedding_api_key: str = Field(default="ollama", validation_alias="EMBEDDING_API_KEY")
    embedding_max_text_length: int = Field(default=8192, validation_alias="EMBEDDING_MAX_TEXT_LENGTH")

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-flash", validation_alias="GEMINI_MODEL")
    gemini_label: str = Field(
        default="gemini-2.5-flash",
        validation_alias="GEMINI_LABEL",
        description="Label reported by active_label() when Gemini is configured",
    )
    openrouter_api_key: str = Field(default="", validation_alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(
        default="mistralai/mistral-small-3.2-24b-instruct:free",
        validation_alias="OPENROUTER_MODEL",
    )
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", validation_alias="OPENROUTER_BASE_URL")
    openrouter_label: str = Field(default="openrouter:gpt-4o-mini", validation_alias="OPENROUTER_LABEL")
    provider_timeout_seconds: float = Field(default=20.0, validation_alias="PROVIDER_TIMEOUT_SECONDS")
    local_max_tokens_cap: int = Field(default=256, validation_alias="LOCAL_MAX_TOKENS_CAP")
    local_timeout_seconds: float = Field(default=120.0, validation_alias="LOCAL_TIMEOUT_SECONDS")

    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    rag_cache_backend: str = Field(default="memory", validation_alias="RAG_CACHE_BACKEND")
    rag_cache_ttl_seconds: int = Field(default=3600, validation_alias="RAG_CACHE_TTL_SECONDS")
    rag_min_similarity: float = Field(default=0.5, validation_alias="RAG_MIN_SIMILARITY")
    rag_assistant_min_similarity: float = Field(default=0.7, validation_alias="RAG_ASSISTANT_MIN_SIMILARITY")
    rag_context_limit: int = Field(default=5, validation_alias="RAG_CONTEXT_LIMIT")

    assistant_app_name: str = Field(default="EventideV1", validation_alias="ASSISTANT_APP_NAME")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("rag_cache_backend")
    @classmethod
    def validate_cache_backend(cls, value: str) -> str:
        """Validate the retrieval cache backend name."""
        lowered = value.lower()
        if lowered not in {"memory", "redis"}:
            logger.warning(f"Invalid RAG_CACHE_BACKEND '{value}'. Valid backends are: memory, redis. Defaulting to memory.")
            return "memory"
        return lowered

    @field_validator("rag_min_similarity", "rag_assistant_min_similarity")
    @classmethod
    def validate_similarity(cls, value: float) -> float:
        """Similarity thresholds live in the cosine range."""
        if not -1.0 <= value <= 1.0:
            raise ValueError(f"similarity threshold must be within [-1, 1], got {value}")
        return value

    @field_validator("embedding_max_text_length", "local_max_tokens_cap", "rag_context_limit")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Limits must be positive."""
        if value <= 0:
            raise ValueError(f"value must be positive, got {value}")
        return value

    @property
    def resolved_embedding_base_url(self) -> str:
        """Embeddings endpoint, falling back to Ollama's OpenAI-compatible API."""
        if self.embedding_base_url:
            return self.embedding_base_url
        return f"{self.ollama_host.rstrip('/')}/v1"

    @property
    def gemini_configured(self) -> bool:
        return is_configured_key(self.gemini_api_key)

    @property
    def openrouter_configured(self) -> bool:
        return is_configured_key(self.openrouter_api_key)


settings = Settings()
