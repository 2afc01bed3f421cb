"""Token bucket rate limiter for LLM providers.

One bucket per provider. ``acquire`` consumes a token when one is
available; otherwise it sleeps the calling task until the bucket refills.
Other tasks, including tasks for other providers, keep running. The wait
is bounded: past ``max_wait`` the caller gets RateLimitTimeoutError and
the fallback chain moves on.

Pattern based on:
- Token Bucket Algorithm: https://en.wikipedia.org/wiki/Token_bucket
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict

logger = logging.getLogger("pocket.classifier.rate_limiter")

__all__ = ["RateLimitTimeoutError", "RateLimiter", "TokenBucket"]


class RateLimitTimeoutError(TimeoutError):
    """No token became available within the bounded wait."""


@dataclass
class TokenBucket:
    """Token bucket for a single provider.

    Attributes:
        capacity: Maximum tokens in bucket
        tokens: Current tokens available
        refill_rate: Tokens added per second
        last_refill: Clock reading of the last refill
    """

    capacity: float
    tokens: float
    refill_rate: float
    last_refill: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class RateLimiter:
    """Per-provider token bucket rate limiter.

    Example:
        >>> limiter = RateLimiter(default_burst=10, default_per_minute=60)
        >>> limiter.configure("openrouter", burst=50, per_minute=600)
        >>> await limiter.acquire("openrouter")
    """

    def __init__(
        self,
        default_burst: int = 10,
        default_per_minute: int = 60,
        max_wait: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            default_burst: Bucket capacity for providers without explicit settings
            default_per_minute: Refill rate for providers without explicit settings
            max_wait: Maximum seconds a caller may wait in ``acquire``
            clock: Monotonic clock, injectable for tests
        """
        self.default_burst = default_burst
        self.default_per_minute = default_per_minute
        self.max_wait = max_wait
        self._clock = clock
        self._settings: Dict[str, tuple[int, int]] = {}
        self._buckets: Dict[str, TokenBucket] = {}

    def configure(self, provider: str, burst: int, per_minute: int) -> None:
        """Set bucket parameters for a provider. Resets an existing bucket."""
        self._settings[provider] = (burst, per_minute)
        self._buckets.pop(provider, None)
        logger.info(
            "rate_limiter_configured",
            extra={"provider": provider, "burst": burst, "per_minute": per_minute},
        )

    def _get_bucket(self, provider: str) -> TokenBucket:
        bucket = self._buckets.get(provider)
        if bucket is None:
            burst, per_minute = self._settings.get(
                provider, (self.default_burst, self.default_per_minute)
            )
            bucket = TokenBucket(
                capacity=float(burst),
                tokens=float(burst),  # Start full
                refill_rate=per_minute / 60.0,
                last_refill=self._clock(),
            )
            self._buckets[provider] = bucket
        return bucket

    def _refill(self, bucket: TokenBucket) -> None:
        now = self._clock()
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_rate)
        bucket.last_refill = now

    def try_acquire(self, provider: str, tokens: int = 1) -> bool:
        """Consume tokens if available right now, without waiting."""
        bucket = self._get_bucket(provider)
        self._refill(bucket)
        if bucket.tokens >= tokens:
            bucket.tokens -= tokens
            return True
        return False

    async def acquire(self, provider: str, tokens: int = 1) -> float:
        """Consume tokens, waiting for a refill if the bucket is empty.

        Waiters for the same provider queue on the bucket lock, so tokens
        are handed out in arrival order.

        Args:
            provider: Provider name
            tokens: Tokens to consume

        Returns:
            Seconds spent waiting

        Raises:
            RateLimitTimeoutError: If no token arrived within ``max_wait``
        """
        bucket = self._get_bucket(provider)
        start = self._clock()
        deadline = start + self.max_wait

        async with bucket.lock:
            while True:
                self._refill(bucket)
                if bucket.tokens >= tokens:
                    bucket.tokens -= tokens
                    waited = self._clock() - start
                    if waited > 0:
                        logger.debug(
                            "rate_limit_tokens_acquired",
                            extra={"provider": provider, "wait_seconds": waited},
                        )
                    return waited

                needed = (tokens - bucket.tokens) / bucket.refill_rate
                remaining = deadline - self._clock()
                if needed > remaining:
                    logger.warning(
                        "rate_limit_timeout",
                        extra={
                            "provider": provider,
                            "tokens_available": bucket.tokens,
                            "max_wait_seconds": self.max_wait,
                        },
                    )
                    raise RateLimitTimeoutError(
                        f"No {provider} token within {self.max_wait:.1f}s"
                    )
                await asyncio.sleep(needed)

    def remaining(self, provider: str) -> float:
        """Tokens currently available for a provider."""
        bucket = self._get_bucket(provider)
        self._refill(bucket)
        return bucket.tokens

    def get_status(self, provider: str) -> dict:
        """Get current rate limit status for provider, for diagnostics."""
        bucket = self._get_bucket(provider)
        self._refill(bucket)
        return {
            "provider": provider,
            "tokens_available": bucket.tokens,
            "capacity": bucket.capacity,
            "refill_rate_per_second": bucket.refill_rate,
            "utilization_pct": (1 - bucket.tokens / bucket.capacity) * 100,
        }

    def reset(self, provider: str | None = None) -> None:
        """Refill one provider's bucket, or all buckets."""
        targets = [provider] if provider else list(self._buckets)
        for name in targets:
            bucket = self._get_bucket(name)
            bucket.tokens = bucket.capacity
            bucket.last_refill = self._clock()
        logger.info("rate_limiter_reset", extra={"provider": provider or "all"})
