"""OpenRouter provider for cloud category scoring.

Uses the OpenAI-compatible chat completions endpoint.
"""

import json
import logging

import httpx

from .base import MAX_SCORE_TOKENS, BaseProvider

logger = logging.getLogger("pocket.classifier.providers.openrouter")

__all__ = ["OpenRouterProvider"]


class OpenRouterProvider(BaseProvider):
    """OpenRouter provider for cloud LLM scoring."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "google/gemini-2.5-flash",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key (None leaves the provider unavailable)
            base_url: OpenRouter API base URL
            model: Model name
            timeout: Request timeout in seconds
            transport: Optional httpx transport, for tests
        """
        super().__init__(timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model

        if not self.api_key:
            logger.warning("openrouter_no_api_key")

        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "X-Title": "Telepocket",
            },
        )

    @property
    def name(self) -> str:
        return "openrouter"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def score(self, prompt: str) -> str:
        """Score a prompt using OpenRouter.

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If OpenRouter is unreachable or rejects the request
            ValueError: If response is invalid JSON
        """
        if not self.api_key:
            raise ConnectionError("OpenRouter API key not configured")

        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions",
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": MAX_SCORE_TOKENS,
                    "temperature": 0.1,
                },
            )
            response.raise_for_status()
            result = response.json()
            text = result["choices"][0]["message"]["content"] or ""

            usage = result.get("usage", {})
            logger.debug(
                "openrouter_score_success",
                extra={
                    "model": self.model,
                    "input_tokens": usage.get("prompt_tokens", 0),
                    "output_tokens": usage.get("completion_tokens", 0),
                },
            )
            return text

        except httpx.TimeoutException as e:
            logger.error("openrouter_timeout", extra={"error": str(e)})
            raise TimeoutError(f"OpenRouter request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("openrouter_http_error", extra={"error": str(e)})
            raise ConnectionError(f"OpenRouter HTTP error: {e}") from e
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            logger.error("openrouter_parse_error", extra={"error": str(e)})
            raise ValueError(f"Invalid OpenRouter response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
