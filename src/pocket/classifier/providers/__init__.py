"""Scoring providers package.

Exports the LLM providers used by the fallback chain and the embedding
generator, and ``build_provider`` to construct one from configuration.
"""

from ...config import PipelineConfig
from .base import BaseProvider, parse_score
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openrouter import OpenRouterProvider

__all__ = [
    "BaseProvider",
    "ClaudeProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenRouterProvider",
    "build_provider",
    "parse_score",
]


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


def build_provider(name: str, config: PipelineConfig) -> BaseProvider:
    """Construct a provider by name from configuration.

    Args:
        name: One of openrouter, gemini, claude, ollama
        config: Pipeline configuration

    Raises:
        ValueError: If the name is unknown
    """
    timeout = config.provider_timeout_seconds
    if name == "openrouter":
        return OpenRouterProvider(
            api_key=_secret(config.openrouter_api_key),
            base_url=config.openrouter_base_url,
            model=config.openrouter_model,
            timeout=timeout,
        )
    if name == "gemini":
        return GeminiProvider(
            api_key=_secret(config.gemini_api_key),
            model=config.gemini_model,
            embedding_model=config.gemini_embedding_model,
            base_url=config.gemini_base_url,
            timeout=timeout,
        )
    if name == "claude":
        return ClaudeProvider(
            api_key=_secret(config.anthropic_api_key),
            model=config.anthropic_model,
            timeout=timeout,
        )
    if name == "ollama":
        return OllamaProvider(
            base_url=config.ollama_base_url,
            model=config.ollama_model,
            embedding_model=config.ollama_embedding_model,
            timeout=timeout,
        )
    raise ValueError(f"Unknown provider: {name}")
