"""Base provider abstract class for category scoring and embeddings.

Defines the interface every scoring provider in the fallback chain
implements. Providers normalize their failures to builtin exceptions:

- TimeoutError: request exceeded its timeout
- ConnectionError: provider unreachable, unauthorized or not configured
- ValueError: response could not be read
"""

import logging
import re
from abc import ABC, abstractmethod

logger = logging.getLogger("pocket.classifier.providers")

__all__ = ["BaseProvider", "MAX_SCORE_TOKENS", "parse_score"]

# A score is a bare integer; leave room for stray whitespace or a newline
MAX_SCORE_TOKENS = 10

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_score(response_text: str | None) -> int:
    """Parse an LLM reply into an integer score in [0, 100].

    The leading integer is used and clamped. Anything unparsable is 0.

    Examples:
        >>> parse_score("87")
        87
        >>> parse_score(" 120\\n")
        100
        >>> parse_score("I think 80")
        0
    """
    if not response_text:
        return 0
    match = _LEADING_INT_RE.match(response_text)
    if not match:
        logger.debug("score_parse_failed", extra={"response_preview": response_text[:50]})
        return 0
    return max(0, min(100, int(match.group(1))))


class BaseProvider(ABC):
    """Abstract base class for scoring providers.

    Usable as an async context manager; ``aclose`` releases HTTP clients.
    """

    def __init__(self, timeout: float = 10.0):
        """Initialize provider.

        Args:
            timeout: Request timeout in seconds
        """
        self.timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging, metrics and rate limiting."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured to accept requests.

        Cheap and local (no network call).
        """

    @abstractmethod
    async def score(self, prompt: str) -> str:
        """Send a rendered scoring prompt and return the raw reply text.

        Args:
            prompt: Fully rendered category prompt

        Returns:
            Raw reply text, parsed by ``parse_score``

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If provider is unreachable
            ValueError: If response is invalid
        """

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for text.

        Raises:
            NotImplementedError: If the provider has no embedding endpoint
        """
        raise NotImplementedError(f"{self.name} does not provide embeddings")

    async def aclose(self) -> None:
        """Clean up resources. Override in subclasses if needed."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
