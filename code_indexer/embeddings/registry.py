"""Registry for creating embedder instances from configuration."""

from typing import Any

from .base import Embedder, RetryableEmbedder
from .ollama import OllamaEmbedder
from .openai import OPENAI_AVAILABLE, OpenAIEmbedder
from .voyage import VOYAGE_AVAILABLE, VoyageEmbedder


class EmbedderRegistry:
    """Registry for creating and managing embedders."""

    def __init__(self) -> None:
        self._embedders: dict[str, type[Embedder]] = {}
        self._register_default_embedders()

    def _register_default_embedders(self) -> None:
        self.register("ollama", OllamaEmbedder)
        if OPENAI_AVAILABLE:
            self.register("openai", OpenAIEmbedder)
        if VOYAGE_AVAILABLE:
            self.register("voyage", VoyageEmbedder)

    def register(self, name: str, embedder_class: type[Embedder]) -> None:
        self._embedders[name] = embedder_class

    def create_embedder(self, provider: str, config: dict[str, Any]) -> Embedder:
        """Create an embedder instance from provider-specific keyword arguments."""
        if provider not in self._embedders:
            available = list(self._embedders.keys())
            raise ValueError(
                f"Unknown embedder provider: {provider}. Available: {available}"
            )

        embedder_class = self._embedders[provider]
        try:
            return embedder_class(**config)
        except (ValueError, ImportError) as e:
            raise RuntimeError(f"Failed to create {provider} embedder: {e}") from e

    def get_available_providers(self) -> list[str]:
        return list(self._embedders.keys())

    def get_provider_info(self, provider: str) -> dict[str, Any]:
        if provider not in self._embedders:
            raise ValueError(f"Unknown provider: {provider}")

        embedder_class = self._embedders[provider]
        return {
            "provider": provider,
            "class": embedder_class.__name__,
            "available_models": list(getattr(embedder_class, "MODELS", {}).keys()),
            "supports_retry": issubclass(embedder_class, RetryableEmbedder),
        }


def create_embedder_from_config(config: Any) -> Embedder:
    """Create the configured embedder from an ``IndexerConfig``."""
    registry = EmbedderRegistry()
    provider = config.embedding_provider
    model = config.effective_embedding_model
    attempts = config.embedding_retries

    if provider == "openai":
        provider_config: dict[str, Any] = {
            "api_key": config.openai_api_key,
            "model": model,
            "dimensions": config.embedding_dimensions,
            "max_attempts": attempts,
        }
    elif provider == "voyage":
        provider_config = {
            "api_key": config.voyage_api_key,
            "model": model,
            "max_attempts": attempts,
        }
    else:
        provider_config = {
            "host": config.ollama_host,
            "model": model,
            "max_attempts": attempts,
        }

    return registry.create_embedder(provider, provider_config)
