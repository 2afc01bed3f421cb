"""Category scoring for saved notes and links.

Provides the per-provider rate limiter, the scoring strategy fallback chain
(primary LLM, secondary LLM, pattern rules) and the concurrent Classifier.
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .llm_classifier import Classifier, build_fallback_chain, build_rate_limiter
from .rate_limiter import RateLimiter, RateLimitTimeoutError
from .rules import detect_by_pattern
from .strategies import (
    FallbackChain,
    PatternStrategy,
    ProviderStrategy,
    ProviderUnavailableError,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "Classifier",
    "FallbackChain",
    "PatternStrategy",
    "ProviderStrategy",
    "ProviderUnavailableError",
    "RateLimitTimeoutError",
    "RateLimiter",
    "build_fallback_chain",
    "build_rate_limiter",
    "detect_by_pattern",
]
