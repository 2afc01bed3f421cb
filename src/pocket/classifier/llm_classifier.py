"""Category classifier.

Scores an item against every enabled category definition concurrently
through the fallback chain, then merges each chain score with the
fast-path heuristic score.
"""

import asyncio
import logging

from ..categories import CategoryDefinition
from ..config import PipelineConfig
from ..models import ScoreResult, merge_scores
from .circuit_breaker import CircuitBreaker
from .metrics import record_score
from .providers import BaseProvider, build_provider
from .rate_limiter import RateLimiter
from .rules import detect_by_pattern
from .strategies import FallbackChain, PatternStrategy, ProviderStrategy

logger = logging.getLogger("pocket.classifier.llm_classifier")

__all__ = ["Classifier", "build_fallback_chain", "build_rate_limiter"]


def build_rate_limiter(config: PipelineConfig) -> RateLimiter:
    """Rate limiter with bucket settings for every configured provider."""
    limiter = RateLimiter(
        default_burst=config.default_burst,
        default_per_minute=config.default_per_minute,
        max_wait=config.rate_limit_max_wait_seconds,
    )
    for name in {*config.provider_order(), config.embedding_provider}:
        burst, per_minute = config.bucket_settings(name)
        limiter.configure(name, burst=burst, per_minute=per_minute)
    return limiter


def build_fallback_chain(
    config: PipelineConfig,
    providers: dict[str, BaseProvider] | None = None,
    rate_limiter: RateLimiter | None = None,
    circuit_breaker: CircuitBreaker | None = None,
) -> FallbackChain:
    """Build primary -> secondary -> pattern chain from configuration.

    Args:
        config: Pipeline configuration
        providers: Already constructed providers by name; missing ones are built
        rate_limiter: Shared rate limiter (built from config if None)
        circuit_breaker: Shared circuit breaker (built from config if None)
    """
    providers = providers if providers is not None else {}
    rate_limiter = rate_limiter or build_rate_limiter(config)
    circuit_breaker = circuit_breaker or CircuitBreaker(
        failure_threshold=config.circuit_failure_threshold,
        reset_timeout=config.circuit_reset_seconds,
    )

    strategies = []
    for name in config.provider_order():
        if name not in providers:
            providers[name] = build_provider(name, config)
        strategies.append(
            ProviderStrategy(
                providers[name],
                rate_limiter,
                circuit_breaker,
                timeout=config.provider_timeout_seconds,
            )
        )
    strategies.append(PatternStrategy())

    chain = FallbackChain(strategies)
    logger.info("fallback_chain_built", extra={"strategies": chain.names})
    return chain


class Classifier:
    """Concurrent per-category scoring with fast-path merge.

    Example:
        >>> classifier = Classifier(chain, definitions)
        >>> results = await classifier.classify("watch later", ["https://youtu.be/x"])
        >>> results[0].category
        'youtube'
    """

    def __init__(
        self,
        chain: FallbackChain,
        definitions: list[CategoryDefinition],
        enabled: bool = True,
    ):
        self.chain = chain
        self.definitions = [d for d in definitions if d.enabled]
        self.enabled = enabled

    @property
    def category_names(self) -> list[str]:
        return [d.name for d in self.definitions]

    def definition(self, category: str) -> CategoryDefinition | None:
        for d in self.definitions:
            if d.name == category:
                return d
        return None

    async def classify(self, content: str, urls: list[str]) -> list[ScoreResult]:
        """Score content against every enabled category.

        All categories are scored concurrently and independently; a category
        whose scoring raises gets score 0 without affecting the others.

        Args:
            content: Item text
            urls: URLs associated with the item

        Returns:
            One ScoreResult per enabled category, highest score first. Empty
            when classification is disabled.
        """
        if not self.enabled:
            logger.debug("classifier_disabled")
            return []
        if not self.definitions:
            logger.warning("no_categories_enabled")
            return []

        fast_path = detect_by_pattern(content, urls)
        outcomes = await asyncio.gather(
            *(self.chain.score(content, urls, d) for d in self.definitions),
            return_exceptions=True,
        )

        results = []
        for definition, outcome in zip(self.definitions, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "category_scoring_failed",
                    extra={
                        "category": definition.name,
                        "error": str(outcome),
                        "error_type": type(outcome).__name__,
                    },
                )
                chain_score, source = 0, "failed"
            else:
                chain_score, source = outcome

            heuristic = fast_path.get(definition.name)
            score = merge_scores(heuristic, chain_score)
            if heuristic is not None and heuristic > chain_score:
                source = "fast-path"

            record_score(definition.name, score)
            results.append(
                ScoreResult.build(
                    definition.name,
                    score,
                    definition.auto_confirm_threshold,
                    definition.suggest_threshold,
                    source=source,
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info(
            "classification_complete",
            extra={"scores": {r.category: r.score for r in results}},
        )
        return results
