"""Scoring strategies and the fallback chain.

Every strategy implements ``score(content, urls, definition) -> int``.
The chain tries its strategies in order and returns the first successful
score for a category; results from different strategies are never mixed.
The last link is ``PatternStrategy``, which never fails.
"""

import asyncio
import logging
import time
from typing import Protocol

from ..categories import CategoryDefinition, render_prompt
from .circuit_breaker import CircuitBreaker
from .metrics import record_fallback, record_provider_call
from .providers.base import BaseProvider, parse_score
from .rate_limiter import RateLimiter, RateLimitTimeoutError
from .rules import pattern_score

logger = logging.getLogger("pocket.classifier.strategies")

__all__ = [
    "FallbackChain",
    "PatternStrategy",
    "ProviderStrategy",
    "ProviderUnavailableError",
    "ScoringStrategy",
    "STRATEGY_ERRORS",
]


class ProviderUnavailableError(ConnectionError):
    """Provider skipped: circuit open or provider not configured."""


# Failures that move the chain to its next strategy
STRATEGY_ERRORS = (TimeoutError, ConnectionError, ValueError)


def _failure_reason(error: Exception) -> str:
    if isinstance(error, RateLimitTimeoutError):
        return "rate_limited"
    if isinstance(error, ProviderUnavailableError):
        return "unavailable"
    return type(error).__name__.lower()


class ScoringStrategy(Protocol):
    name: str

    async def score(
        self, content: str, urls: list[str], definition: CategoryDefinition
    ) -> int: ...


class ProviderStrategy:
    """Score a category by sending its rendered prompt to an LLM provider.

    Each attempt passes the circuit breaker, waits for a rate limit token,
    then calls the provider under a timeout.
    """

    def __init__(
        self,
        provider: BaseProvider,
        rate_limiter: RateLimiter,
        circuit_breaker: CircuitBreaker,
        timeout: float = 10.0,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.provider.name

    async def score(
        self, content: str, urls: list[str], definition: CategoryDefinition
    ) -> int:
        """Score one category with the provider.

        Returns:
            Parsed score in [0, 100]; an unparsable reply is 0

        Raises:
            ProviderUnavailableError: Circuit open or provider not configured
            RateLimitTimeoutError: No rate limit token within the bounded wait
            TimeoutError: Provider call exceeded the timeout
            ConnectionError: Provider unreachable
            ValueError: Provider reply unreadable
        """
        provider_name = self.provider.name
        if not self.provider.is_available():
            raise ProviderUnavailableError(f"{provider_name} is not configured")
        if not self.circuit_breaker.is_available(provider_name):
            raise ProviderUnavailableError(f"{provider_name} circuit is open")

        try:
            await self.rate_limiter.acquire(provider_name)
        except RateLimitTimeoutError:
            self.circuit_breaker.record_failure(provider_name, "rate_limit")
            raise

        prompt = render_prompt(definition.prompt_template, content, urls)
        start_time = time.perf_counter()
        try:
            reply = await asyncio.wait_for(self.provider.score(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure(provider_name, "timeout")
            record_provider_call(provider_name, False, time.perf_counter() - start_time)
            raise TimeoutError(f"{provider_name} scoring timed out") from e
        except STRATEGY_ERRORS as e:
            self.circuit_breaker.record_failure(provider_name, type(e).__name__.lower())
            record_provider_call(provider_name, False, time.perf_counter() - start_time)
            raise

        self.circuit_breaker.record_success(provider_name)
        record_provider_call(provider_name, True, time.perf_counter() - start_time)
        return parse_score(reply)


class PatternStrategy:
    """Deterministic last resort: the rule-based score for the category, else 0."""

    name = "pattern"

    async def score(
        self, content: str, urls: list[str], definition: CategoryDefinition
    ) -> int:
        return pattern_score(content, urls, definition.name)


class FallbackChain:
    """Ordered strategies; the first success per category wins.

    Example:
        >>> chain = FallbackChain([primary, secondary, PatternStrategy()])
        >>> score, source = await chain.score("note text", [], definition)
    """

    def __init__(self, strategies: list[ScoringStrategy]):
        if not strategies:
            raise ValueError("FallbackChain needs at least one strategy")
        self.strategies = list(strategies)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.strategies]

    async def score(
        self, content: str, urls: list[str], definition: CategoryDefinition
    ) -> tuple[int, str]:
        """Score one category through the chain.

        Returns:
            (score, name of the strategy that produced it). When every
            strategy fails the result is (0, "failed").
        """
        for idx, strategy in enumerate(self.strategies):
            try:
                value = await strategy.score(content, urls, definition)
                return max(0, min(100, int(value))), strategy.name
            except STRATEGY_ERRORS as e:
                reason = _failure_reason(e)
                logger.warning(
                    "strategy_failed",
                    extra={
                        "strategy": strategy.name,
                        "category": definition.name,
                        "reason": reason,
                        "error": str(e),
                    },
                )
                if idx < len(self.strategies) - 1:
                    record_fallback(strategy.name, self.strategies[idx + 1].name, reason)

        logger.error("all_strategies_failed", extra={"category": definition.name})
        return 0, "failed"
