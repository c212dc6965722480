"""Configuration management for the MCQ service."""

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ordered fastest/cheapest first, most capable last.
DEFAULT_CANDIDATE_MODELS: List[str] = [
    "gemini-1.5-flash-latest",
    "gemini-flash-lite-latest",
    "gemini-flash-latest",
    "gemini-2.0-flash-exp",
    "gemini-2.0-flash-lite",
    "gemini-1.5-pro-latest",
    "gemini-2.0-pro-exp",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["*"]

    # LLM Provider
    gemini_api_key: Optional[str] = None
    candidate_models: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CANDIDATE_MODELS)
    )
    temperature: float = 0.1
    max_output_tokens: int = 8192

    # Retry / Fallback
    max_attempts_per_model: int = 3
    backoff_base_delay: float = 2.0  # seconds, doubled per attempt
    retry_safety_margin: float = 1.0  # seconds added to provider retry hints

    # Batching / Streaming
    batch_size: int = 2
    inter_batch_delay: float = 1.0  # seconds between batches
    report_batch_errors: bool = True

    # Result Cache
    cache_max_entries: int = 500
    cache_eviction_policy: Literal["fifo", "lru"] = "fifo"

    # Request Limits
    max_total_items: int = 1000
    max_material_length: int = 50_000
    max_upload_bytes: int = 10 * 1024 * 1024

    @field_validator("candidate_models")
    @classmethod
    def validate_candidate_models(cls, value: List[str]) -> List[str]:
        """Ensure at least one candidate model is configured."""
        models = [model.strip() for model in value if model and model.strip()]
        if not models:
            raise ValueError("candidate_models must contain at least one model")
        return models

    @field_validator("max_attempts_per_model", "batch_size", "cache_max_entries")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure counters and sizes are at least 1."""
        if value < 1:
            raise ValueError("must be at least 1")
        return value


# Global settings instance
settings = Settings()
