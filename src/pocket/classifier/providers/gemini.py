"""Gemini provider for category scoring and embeddings.

Talks to the Generative Language REST API directly: ``generateContent``
for scores and ``embedContent`` for 768-dimension note embeddings.
"""

import json
import logging

import httpx

from .base import MAX_SCORE_TOKENS, BaseProvider

logger = logging.getLogger("pocket.classifier.providers.gemini")

__all__ = ["GeminiProvider"]


class GeminiProvider(BaseProvider):
    """Google Gemini provider."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.5-flash",
        embedding_model: str = "text-embedding-004",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Gemini API key (None leaves the provider unavailable)
            model: Generation model name
            embedding_model: Embedding model name
            base_url: REST API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, for tests
        """
        super().__init__(timeout)
        self.api_key = api_key
        self.model = model
        self.embedding_model = embedding_model
        self.base_url = base_url.rstrip("/")

        if not self.api_key:
            logger.warning("gemini_no_api_key")

        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.api_key:
            raise ConnectionError("Gemini API key not configured")

        try:
            response = await self._client.post(
                f"{self.base_url}/{path}",
                params={"key": self.api_key},
                json=payload,
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error("gemini_timeout", extra={"path": path, "error": str(e)})
            raise TimeoutError(f"Gemini request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            # The request URL carries the key; log the status only
            status = e.response.status_code
            logger.error("gemini_http_error", extra={"path": path, "status_code": status})
            raise ConnectionError(f"Gemini HTTP error: {status}") from e
        except httpx.HTTPError as e:
            logger.error("gemini_http_error", extra={"path": path, "error_type": type(e).__name__})
            raise ConnectionError(f"Gemini HTTP error: {type(e).__name__}") from e
        except json.JSONDecodeError as e:
            logger.error("gemini_parse_error", extra={"path": path, "error": str(e)})
            raise ValueError(f"Invalid Gemini response: {e}") from e

    async def score(self, prompt: str) -> str:
        """Score a prompt using generateContent.

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If Gemini is unreachable or rejects the request
            ValueError: If the response has no candidate text
        """
        result = await self._post(
            f"models/{self.model}:generateContent",
            {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": 0.1,
                    "maxOutputTokens": MAX_SCORE_TOKENS,
                },
            },
        )
        try:
            parts = result["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as e:
            logger.error("gemini_parse_error", extra={"error": str(e)})
            raise ValueError(f"Invalid Gemini response: {e}") from e

    async def embed(self, text: str) -> list[float]:
        """Embed text using embedContent.

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If Gemini is unreachable or rejects the request
            ValueError: If the response has no embedding values
        """
        result = await self._post(
            f"models/{self.embedding_model}:embedContent",
            {
                "model": f"models/{self.embedding_model}",
                "content": {"parts": [{"text": text}]},
            },
        )
        try:
            return [float(v) for v in result["embedding"]["values"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.error("gemini_embedding_parse_error", extra={"error": str(e)})
            raise ValueError(f"Invalid Gemini embedding response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
