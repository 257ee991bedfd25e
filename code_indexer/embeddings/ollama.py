"""Ollama embeddings over the local HTTP API."""

from typing import Any

import requests

from .base import EmbeddingResult, RetryableEmbedder


class OllamaEmbedder(RetryableEmbedder):
    """Embeddings from a local or remote Ollama server.

    Uses ``POST {host}/api/embeddings`` with ``{"model", "prompt"}`` and
    reads the ``embedding`` array from the response.
    """

    MODELS = {
        "nomic-embed-text:v1.5": {"dimensions": 768, "max_tokens": 8192},
        "nomic-embed-text": {"dimensions": 768, "max_tokens": 8192},
        "mxbai-embed-large": {"dimensions": 1024, "max_tokens": 512},
        "all-minilm": {"dimensions": 384, "max_tokens": 256},
    }
    DEFAULT_MAX_TOKENS = 2048

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text:v1.5",
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.model_config = self.MODELS.get(model, {})
        self.session = session or requests.Session()

        super().__init__(max_attempts=max_attempts, base_delay=base_delay)

    def _request(self, text: str) -> list[float]:
        response = self.session.post(
            f"{self.host}/api/embeddings",
            json={"model": self.model, "prompt": text},
            timeout=self.timeout,
        )
        response.raise_for_status()
        embedding = response.json().get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise ValueError(f"Ollama returned no embedding for model {self.model}")
        return embedding

    def embed_text(self, text: str) -> EmbeddingResult:
        return self._embed_with_retry(self.truncate_text(text), self._request)

    def get_model_info(self) -> dict[str, Any]:
        return {
            "provider": "ollama",
            "model": self.model,
            "host": self.host,
            "dimensions": self.model_config.get("dimensions"),
            "max_tokens": self.get_max_tokens(),
        }

    def get_max_tokens(self) -> int:
        return int(self.model_config.get("max_tokens", self.DEFAULT_MAX_TOKENS))
