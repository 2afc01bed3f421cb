"""Claude (Anthropic) provider for category scoring.

Uses the Anthropic SDK's async client.
"""

import logging

import anthropic
from anthropic import AsyncAnthropic

from .base import MAX_SCORE_TOKENS, BaseProvider

logger = logging.getLogger("pocket.classifier.providers.claude")

__all__ = ["ClaudeProvider"]


class ClaudeProvider(BaseProvider):
    """Claude/Anthropic provider for LLM scoring."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "claude-3-5-haiku-20241022",
        timeout: float = 10.0,
        client: AsyncAnthropic | None = None,
    ):
        """Initialize Claude provider.

        Args:
            api_key: Anthropic API key (None leaves the provider unavailable)
            model: Model name
            timeout: Request timeout in seconds
            client: Preconfigured client, for tests
        """
        super().__init__(timeout)
        self.model = model

        if client is not None:
            self._client = client
        elif api_key:
            self._client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            logger.warning("claude_no_api_key")
            self._client = None

    @property
    def name(self) -> str:
        return "claude"

    def is_available(self) -> bool:
        return self._client is not None

    async def score(self, prompt: str) -> str:
        """Score a prompt using the Messages API.

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If Claude is unreachable or rejects the request
            ValueError: If response has no text block
        """
        if self._client is None:
            raise ConnectionError("Claude client not initialized (missing API key)")

        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=MAX_SCORE_TOKENS,
                temperature=0.1,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            logger.error("claude_timeout", extra={"error": str(e)})
            raise TimeoutError(f"Claude request timed out: {e}") from e
        except anthropic.APIError as e:
            logger.error("claude_api_error", extra={"error": str(e), "type": type(e).__name__})
            raise ConnectionError(f"Claude API error: {e}") from e

        if not response.content:
            raise ValueError("Claude response has no content")
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

        logger.debug(
            "claude_score_success",
            extra={
                "model": self.model,
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
