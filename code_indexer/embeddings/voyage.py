"""Voyage AI embeddings implementation with retry logic."""

from typing import Any

import tiktoken

from ..indexer_logging import LogCategory, get_category_logger
from .base import EmbeddingResult, RetryableEmbedder, TiktokenMixin

try:
    import voyageai

    VOYAGE_AVAILABLE = True
except ImportError:
    VOYAGE_AVAILABLE = False


class VoyageEmbedder(TiktokenMixin, RetryableEmbedder):
    """Voyage AI embeddings with retry logic."""

    MODELS = {
        "voyage-3": {"dimensions": 1024, "max_tokens": 32000},
        "voyage-3-lite": {"dimensions": 512, "max_tokens": 32000},
        "voyage-3.5-lite": {"dimensions": 512, "max_tokens": 32000},
        "voyage-code-3": {"dimensions": 1024, "max_tokens": 32000},
    }

    def __init__(
        self,
        api_key: str,
        model: str = "voyage-3-lite",
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ):
        if not VOYAGE_AVAILABLE:
            raise ImportError(
                "VoyageAI package not available. Install with: pip install voyageai"
            )

        if not api_key or not api_key.strip():
            raise ValueError("Valid Voyage AI API key required")

        if model not in self.MODELS:
            raise ValueError(
                f"Unsupported model: {model}. Available: {list(self.MODELS.keys())}"
            )

        self.model = model
        self.model_config = self.MODELS[model]

        super().__init__(max_attempts=max_attempts, base_delay=base_delay)

        self.client = voyageai.Client(api_key=api_key)

    def _init_tiktoken(self) -> None:
        """Voyage tokenization is close to OpenAI's cl100k_base."""
        try:
            self._tiktoken_encoder = tiktoken.get_encoding("cl100k_base")
        except Exception as e:
            get_category_logger(LogCategory.EMBEDDING).warning(
                f"tiktoken initialization failed: {e}"
            )
            self._tiktoken_encoder = None

    def _request(self, text: str) -> list[float]:
        response = self.client.embed(texts=[text], model=self.model, input_type="document")
        return response.embeddings[0]

    def embed_text(self, text: str) -> EmbeddingResult:
        return self._embed_with_retry(self.truncate_text(text), self._request)

    def get_model_info(self) -> dict[str, Any]:
        return {
            "provider": "voyage",
            "model": self.model,
            "dimensions": self.model_config["dimensions"],
            "max_tokens": self.model_config["max_tokens"],
        }

    def get_max_tokens(self) -> int:
        return int(self.model_config["max_tokens"])
