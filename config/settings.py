"""Application settings using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are organized into logical groups:
    - Environment: Runtime environment configuration
    - API Keys: External service authentication
    - Weaviate / Redis: Vector store and embedding cache
    - Embedding: Hosted embedding model
    - Retrieval: Similarity threshold and context budget
    - Generation: Local (Ollama) and cloud (Groq) model providers
    - Request Policy: Timeouts and retry budget
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    env: str = "development"
    """Runtime environment: development, staging, or production."""

    debug: bool = True
    """Enable debug mode with verbose logging."""

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    # ==========================================================================
    # API Keys (Optional - a missing key disables the matching backend)
    # ==========================================================================
    huggingface_api_key: SecretStr | None = None
    """Hugging Face inference token for query/passage embeddings."""

    groq_api_key: SecretStr | None = None
    """Groq API key for the cloud model provider."""

    weaviate_api_key: SecretStr | None = None
    """Weaviate API key (optional, for cloud deployments)."""

    # ==========================================================================
    # Weaviate (Vector Store)
    # ==========================================================================
    weaviate_url: str = "http://localhost:8080"
    """Weaviate server URL."""

    weaviate_grpc_port: int = 50051
    """Weaviate gRPC port."""

    weaviate_collection: str = "LegalPassage"
    """Collection holding the embedded legal passages."""

    weaviate_timeout: int = 30
    """Weaviate request timeout in seconds."""

    # ==========================================================================
    # Redis (Embedding Cache)
    # ==========================================================================
    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL."""

    embedding_cache_enabled: bool = False
    """Cache query embeddings in Redis."""

    embedding_cache_ttl: int = 300
    """Embedding cache TTL in seconds (default: 5 minutes)."""

    # ==========================================================================
    # Embedding Settings
    # ==========================================================================
    embedding_model: str = "intfloat/multilingual-e5-large"
    """E5 embedding model used for both documents and queries."""

    embedding_url: str = "https://router.huggingface.co/hf-inference/models"
    """Base URL of the inference endpoint; the model name is appended."""

    embedding_timeout: float = 30.0
    """Embedding request timeout in seconds."""

    embedding_dimension: int = 1024
    """Dimension of the embedding vectors stored in the collection."""

    # ==========================================================================
    # Retrieval Settings
    # ==========================================================================
    retrieval_top_k: int = 8
    """Number of passages requested from the vector store."""

    min_similarity: float = 0.78
    """Passages scoring below this cosine similarity are never used as grounding."""

    context_char_budget: int = 8000
    """Maximum characters of passage content admitted into one prompt."""

    max_context_passages: int = 4
    """Maximum number of passages admitted into one prompt."""

    # ==========================================================================
    # Conversation Settings
    # ==========================================================================
    max_history_turns: int = 10
    """Most recent conversation turns forwarded to the model."""

    history_char_budget: int = 5600
    """Maximum characters of conversation history forwarded to the model."""

    # ==========================================================================
    # Generation Settings
    # ==========================================================================
    default_provider: str = "cloud"
    """Provider used when a request does not name one: local or cloud."""

    ollama_base_url: str = "http://localhost:11434"
    """Local Ollama inference server."""

    ollama_model: str = "qwen2.5:7b-instruct"
    """Model served by the local Ollama instance."""

    groq_base_url: str = "https://api.groq.com/openai/v1"
    """OpenAI-compatible Groq endpoint."""

    groq_model: str = "llama-3.3-70b-versatile"
    """Groq model for cloud generation."""

    llm_temperature: float = 0.05
    """LLM temperature (lower = more deterministic)."""

    max_tokens: int = 3000
    """Maximum tokens for LLM response."""

    token_timeout: float = 60.0
    """Seconds to wait for the first token, and between later tokens."""

    # ==========================================================================
    # Request Policy
    # ==========================================================================
    request_timeout: float = 90.0
    """Overall ceiling for a single chat request, in seconds."""

    embedding_max_attempts: int = 2
    """Attempts for the embedding call (1 disables retry)."""

    search_max_attempts: int = 2
    """Attempts for the vector search call (1 disables retry)."""

    retry_backoff_seconds: float = 0.3
    """Base delay for exponential backoff between retries."""

    # ==========================================================================
    # HTTP
    # ==========================================================================
    api_host: str = "0.0.0.0"
    """Interface the API server binds to."""

    api_port: int = 8000
    """Port the API server listens on."""

    rate_limit_per_minute: int = 60
    """API rate limit per minute per client."""

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    """Origins allowed to call the API from a browser."""

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"env must be one of {allowed}, got '{v}'")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v.upper()

    @field_validator("default_provider")
    @classmethod
    def validate_default_provider(cls, v: str) -> str:
        """Validate the default provider name."""
        allowed = {"local", "cloud"}
        if v.lower() not in allowed:
            raise ValueError(f"default_provider must be one of {allowed}, got '{v}'")
        return v.lower()

    @field_validator("min_similarity")
    @classmethod
    def validate_min_similarity(cls, v: float) -> float:
        """Validate the similarity threshold is between 0 and 1."""
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"min_similarity must be between 0.0 and 1.0, got {v}")
        return v

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature is between 0 and 2."""
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"llm_temperature must be between 0.0 and 2.0, got {v}")
        return v

    @field_validator("retrieval_top_k")
    @classmethod
    def validate_top_k(cls, v: int) -> int:
        """Keep the search limit small to bound context size."""
        if not 1 <= v <= 10:
            raise ValueError(f"retrieval_top_k must be between 1 and 10, got {v}")
        return v

    @field_validator(
        "context_char_budget",
        "max_context_passages",
        "history_char_budget",
        "embedding_max_attempts",
        "search_max_attempts",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limits are positive."""
        if v < 1:
            raise ValueError(f"value must be a positive integer, got {v}")
        return v

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.env == "development"

    @property
    def embedding_endpoint(self) -> str:
        """Full URL of the embedding model endpoint."""
        return f"{self.embedding_url.rstrip('/')}/{self.embedding_model}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    To reload settings, call `get_settings.cache_clear()` first.
    """
    return Settings()
