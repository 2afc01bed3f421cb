"""Embedding generation for saved notes.

One call per item produces a fixed-dimension vector for semantic search.
The generator is its own failure domain: every failure ends in an explicit
"no embedding" result (None) and nothing is raised to the caller.
"""

import asyncio
import logging
import time

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .classifier.metrics import record_embedding
from .classifier.providers import BaseProvider
from .classifier.rate_limiter import RateLimiter
from .config import EMBEDDING_DIMENSIONS

logger = logging.getLogger("pocket.embed")

__all__ = ["EmbeddingError", "EmbeddingGenerator", "prepare_embedding_text"]


class EmbeddingError(Exception):
    """Raised inside the generator when a vector cannot be produced."""


def prepare_embedding_text(content: str, urls: list[str], max_chars: int = 2000) -> str:
    """Text sent to the embedding model: content plus links, truncated.

    Example:
        >>> prepare_embedding_text("read later", ["https://a.io"])
        'read later\\nLinks: https://a.io'
    """
    text = content.strip()
    if urls:
        text = f"{text}\nLinks: {', '.join(urls)}"
    return text[:max_chars]


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "embedding_retry",
        extra={
            "attempt": retry_state.attempt_number,
            "error": str(error),
            "error_type": type(error).__name__,
        },
    )


class EmbeddingGenerator:
    """Produce one embedding vector per item.

    Attributes:
        provider: Provider whose ``embed`` endpoint is used
        dimensions: Expected vector size, fixed per deployment
        min_length: Items whose stripped text is shorter get no embedding

    Example:
        >>> generator = EmbeddingGenerator(gemini_provider)
        >>> vector = await generator.generate("A long enough note about caching", [])
        >>> len(vector)
        768
    """

    def __init__(
        self,
        provider: BaseProvider,
        rate_limiter: RateLimiter | None = None,
        dimensions: int = EMBEDDING_DIMENSIONS,
        min_length: int = 20,
        max_chars: int = 2000,
        max_retries: int = 2,
        timeout: float = 10.0,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.dimensions = dimensions
        self.min_length = min_length
        self.max_chars = max_chars
        self.max_retries = max_retries
        self.timeout = timeout

    def should_embed(self, content: str) -> bool:
        return len(content.strip()) >= self.min_length

    async def _embed_once(self, text: str) -> list[float]:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire(self.provider.name)
        try:
            return await asyncio.wait_for(self.provider.embed(text), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"{self.provider.name} embedding timed out") from e

    async def _embed(self, text: str) -> list[float]:
        """Call the provider, retrying transient failures.

        Raises:
            EmbeddingError: On any failure after retries, or a wrong-sized vector
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type((TimeoutError, ConnectionError)),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    vector = await self._embed_once(text)
        except (TimeoutError, ConnectionError, ValueError, NotImplementedError) as e:
            raise EmbeddingError(f"{type(e).__name__}: {e}") from e

        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Expected {self.dimensions} dimensions, got {len(vector)}"
            )
        return vector

    async def generate(self, content: str, urls: list[str] | None = None) -> list[float] | None:
        """Generate the embedding for an item.

        Args:
            content: Item text
            urls: URLs appended to the embedded text

        Returns:
            The vector, or None when the item is too short or generation failed
        """
        if not self.should_embed(content):
            record_embedding("skipped")
            logger.debug(
                "embedding_skipped_short_content",
                extra={"length": len(content.strip()), "min_length": self.min_length},
            )
            return None

        text = prepare_embedding_text(content, urls or [], self.max_chars)
        start_time = time.perf_counter()
        try:
            vector = await self._embed(text)
        except EmbeddingError as e:
            record_embedding("failed")
            logger.warning(
                "embedding_failed",
                extra={
                    "provider": self.provider.name,
                    "error": str(e),
                    "duration_ms": (time.perf_counter() - start_time) * 1000,
                },
            )
            return None

        record_embedding("success")
        logger.debug(
            "embedding_generated",
            extra={
                "provider": self.provider.name,
                "dimensions": len(vector),
                "duration_ms": (time.perf_counter() - start_time) * 1000,
            },
        )
        return vector
