"""OpenAI embeddings implementation with retry logic."""

from typing import Any

from .base import EmbeddingResult, RetryableEmbedder, TiktokenMixin

try:
    import openai

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False


class OpenAIEmbedder(TiktokenMixin, RetryableEmbedder):
    """OpenAI embeddings with retry logic."""

    MODELS = {
        "text-embedding-3-small": {"dimensions": 1536, "max_tokens": 8191},
        "text-embedding-3-large": {"dimensions": 3072, "max_tokens": 8191},
        "text-embedding-ada-002": {"dimensions": 1536, "max_tokens": 8191},
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout: float = 30.0,
    ) -> None:
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "OpenAI package not available. Install with: pip install openai"
            )

        if not api_key:
            raise ValueError("Valid OpenAI API key required")

        if model not in self.MODELS:
            raise ValueError(
                f"Unsupported model: {model}. Available: {list(self.MODELS.keys())}"
            )

        self.model = model
        self.model_config = self.MODELS[model]
        # text-embedding-3 models can shorten vectors server-side
        self.dimensions = dimensions if model.startswith("text-embedding-3") else None

        super().__init__(max_attempts=max_attempts, base_delay=base_delay)

        self.client = openai.OpenAI(api_key=api_key, timeout=timeout)

    def _request(self, text: str) -> list[float]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": text,
            "encoding_format": "float",
        }
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        response = self.client.embeddings.create(**kwargs)
        return response.data[0].embedding

    def embed_text(self, text: str) -> EmbeddingResult:
        return self._embed_with_retry(self.truncate_text(text), self._request)

    def get_model_info(self) -> dict[str, Any]:
        return {
            "provider": "openai",
            "model": self.model,
            "dimensions": self.dimensions or self.model_config["dimensions"],
            "max_tokens": self.model_config["max_tokens"],
        }

    def get_max_tokens(self) -> int:
        return int(self.model_config["max_tokens"])
