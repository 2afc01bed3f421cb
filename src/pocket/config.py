"""Configuration management with pydantic-settings for the note pipeline.

Loads from (in order of precedence):
1. Environment variables (highest priority)
2. .env file in the working directory
3. Default values (lowest priority)

Thresholds are validated on load, so an inconsistent deployment fails at
startup instead of silently mis-classifying notes.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("pocket.config")

__all__ = [
    "EMBEDDING_DIMENSIONS",
    "KNOWN_PROVIDERS",
    "PipelineConfig",
    "get_config",
    "reset_config",
]

# Gemini text-embedding-004 output size
EMBEDDING_DIMENSIONS = 768

KNOWN_PROVIDERS = ("openrouter", "gemini", "claude", "ollama")


class PipelineConfig(BaseSettings):
    """Configuration for the classification and embedding pipeline.

    Attributes:
        classifier_enabled: Master switch for category scoring
        primary_provider: First LLM provider in the fallback chain
        secondary_provider: Second LLM provider (empty disables it)
        auto_confirm_threshold: Score at or above which a category is confirmed (0-100)
        suggest_threshold: Score at or above which a category is stored as a suggestion (0-100)
        min_embedding_length: Notes shorter than this (stripped) get no embedding
        batch_timeout_seconds: Shared timeout for pending items in a batch run
        batch_item_delay_seconds: Pause between items during a batch scoring pass
        status_show_after_ms: Delay before a progress indicator becomes visible
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    # Feature toggles
    classifier_enabled: bool = Field(
        default=True, description="Score new notes against category definitions"
    )
    japanese_category_enabled: bool = Field(
        default=True, description="Include the 'japanese' category in scoring"
    )
    disabled_categories: list[str] = Field(
        default_factory=list, description="Category names excluded from scoring"
    )
    categories_file: Path | None = Field(
        default=None,
        description="JSON file with category definitions replacing the built-in set",
    )

    # Provider chain
    primary_provider: str = Field(default="openrouter")
    secondary_provider: str | None = Field(default="gemini")

    openrouter_api_key: SecretStr | None = Field(default=None)
    openrouter_model: str = Field(default="google/gemini-2.5-flash")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")

    gemini_api_key: SecretStr | None = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")
    gemini_embedding_model: str = Field(default="text-embedding-004")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta"
    )

    anthropic_api_key: SecretStr | None = Field(default=None)
    anthropic_model: str = Field(default="claude-3-5-haiku-20241022")

    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3.2:3b")
    ollama_embedding_model: str = Field(default="nomic-embed-text")

    provider_timeout_seconds: float = Field(default=10.0, gt=0, le=300)

    # Rate limiting (token bucket per provider)
    rate_limit_max_wait_seconds: float = Field(default=10.0, gt=0, le=300)
    openrouter_burst: int = Field(default=50, ge=1, le=10000)
    openrouter_per_minute: int = Field(default=600, ge=1, le=100000)
    gemini_burst: int = Field(default=40, ge=1, le=10000)
    gemini_per_minute: int = Field(default=40, ge=1, le=100000)
    default_burst: int = Field(default=10, ge=1, le=10000)
    default_per_minute: int = Field(default=60, ge=1, le=100000)

    # Circuit breaker
    circuit_failure_threshold: int = Field(default=5, ge=1, le=100)
    circuit_reset_seconds: float = Field(default=60.0, ge=1, le=3600)

    # Tiering thresholds (0-100 scores)
    auto_confirm_threshold: int = Field(default=95, ge=0, le=100)
    suggest_threshold: int = Field(default=60, ge=0, le=100)

    # Embeddings
    embedding_provider: str = Field(default="gemini")
    embedding_dimensions: int = Field(default=EMBEDDING_DIMENSIONS, ge=1, le=8192)
    min_embedding_length: int = Field(default=20, ge=0, le=10000)
    embedding_max_chars: int = Field(default=2000, ge=100, le=100000)
    embedding_max_retries: int = Field(default=2, ge=0, le=10)

    # Interactive batch classification
    batch_default_size: int = Field(default=3, ge=1, le=50)
    batch_max_size: int = Field(default=50, ge=1, le=500)
    batch_timeout_seconds: float = Field(default=180.0, gt=0, le=3600)
    batch_item_delay_seconds: float = Field(default=0.5, ge=0, le=60)

    # Status reporter
    status_show_after_ms: int = Field(default=500, ge=0, le=60000)
    status_edit_debounce_ms: int = Field(default=100, ge=0, le=10000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("primary_provider", "embedding_provider")
    @classmethod
    def validate_provider_name(cls, v: str) -> str:
        name = v.strip().lower()
        if name not in KNOWN_PROVIDERS:
            raise ValueError(
                f"Unknown provider '{v}'. Must be one of: {', '.join(KNOWN_PROVIDERS)}"
            )
        return name

    @field_validator("secondary_provider")
    @classmethod
    def validate_secondary_provider(cls, v: str | None) -> str | None:
        if v is None or not v.strip() or v.strip().lower() == "none":
            return None
        name = v.strip().lower()
        if name not in KNOWN_PROVIDERS:
            raise ValueError(
                f"Unknown provider '{v}'. Must be one of: {', '.join(KNOWN_PROVIDERS)}"
            )
        return name

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Invalid log format: {v} (expected json or text)")
        return fmt

    @model_validator(mode="after")
    def validate_thresholds(self) -> "PipelineConfig":
        """Reject an auto-confirm threshold below the suggest threshold."""
        if self.auto_confirm_threshold < self.suggest_threshold:
            raise ValueError(
                "auto_confirm_threshold must be >= suggest_threshold "
                f"(got {self.auto_confirm_threshold} < {self.suggest_threshold})"
            )
        if self.batch_default_size > self.batch_max_size:
            raise ValueError("batch_default_size must be <= batch_max_size")
        return self

    def provider_order(self) -> list[str]:
        """Scoring providers in fallback order, without duplicates."""
        order = [self.primary_provider]
        if self.secondary_provider and self.secondary_provider not in order:
            order.append(self.secondary_provider)
        return order

    def bucket_settings(self, provider: str) -> tuple[int, int]:
        """Return (burst, per_minute) for a provider's token bucket."""
        if provider == "openrouter":
            return self.openrouter_burst, self.openrouter_per_minute
        if provider == "gemini":
            return self.gemini_burst, self.gemini_per_minute
        return self.default_burst, self.default_per_minute


@lru_cache(maxsize=1)
def get_config() -> PipelineConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return PipelineConfig()


def reset_config() -> None:
    """Reset configuration singleton for testing.

    Warning:
        Only use in test code. Production code should not reset config.
    """
    get_config.cache_clear()
