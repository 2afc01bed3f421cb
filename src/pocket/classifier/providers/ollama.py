"""Ollama provider for local category scoring and embeddings."""

import json
import logging

import httpx

from .base import MAX_SCORE_TOKENS, BaseProvider

logger = logging.getLogger("pocket.classifier.providers.ollama")

__all__ = ["OllamaProvider"]


class OllamaProvider(BaseProvider):
    """Ollama provider for local LLM scoring."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2:3b",
        embedding_model: str = "nomic-embed-text",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.embedding_model = embedding_model
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        # Local server; reachability is decided by the first call
        return bool(self.base_url)

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            response = await self._client.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error("ollama_timeout", extra={"error": str(e)})
            raise TimeoutError(f"Ollama request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("ollama_http_error", extra={"error": str(e)})
            raise ConnectionError(f"Ollama HTTP error: {e}") from e
        except json.JSONDecodeError as e:
            logger.error("ollama_parse_error", extra={"error": str(e)})
            raise ValueError(f"Invalid Ollama response: {e}") from e

    async def score(self, prompt: str) -> str:
        """Score a prompt using /api/generate.

        Raises:
            TimeoutError: If request exceeds timeout
            ConnectionError: If Ollama is unreachable
            ValueError: If response is invalid
        """
        result = await self._post(
            "/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": 0.1, "num_predict": MAX_SCORE_TOKENS},
            },
        )
        if "response" not in result:
            raise ValueError("Ollama response missing 'response' field")
        return str(result["response"])

    async def embed(self, text: str) -> list[float]:
        result = await self._post(
            "/api/embeddings", {"model": self.embedding_model, "prompt": text}
        )
        try:
            return [float(v) for v in result["embedding"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid Ollama embedding response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
