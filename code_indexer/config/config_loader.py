"""Configuration loading with file, environment and override layers."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..errors import ConfigurationError
from ..indexer_logging import get_logger
from .models import IndexerConfig

logger = get_logger()

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}

# Environment variable -> config field
ENV_MAPPING = {
    "QDRANT_URL": "qdrant_url",
    "QDRANT_API_KEY": "qdrant_api_key",
    "QDRANT_TIMEOUT": "qdrant_timeout",
    "QDRANT_RETRIES": "qdrant_retries",
    "COLLECTION_NAME": "collection_name",
    "EMBEDDING_PROVIDER": "embedding_provider",
    "EMBEDDING_MODEL": "embedding_model",
    "EMBEDDING_DIMENSIONS": "embedding_dimensions",
    "EMBEDDING_RETRIES": "embedding_retries",
    "STRICT_DIMENSIONS": "strict_dimensions",
    "OPENAI_API_KEY": "openai_api_key",
    "VOYAGE_API_KEY": "voyage_api_key",
    "OLLAMA_HOST": "ollama_host",
    "BATCH_SIZE": "batch_size",
    "MAX_CONCURRENCY": "max_concurrency",
    "ENABLE_INCREMENTAL_INDEXING": "incremental_enabled",
    "PERSIST_METADATA": "persist_metadata",
    "VALIDATION_ENABLED": "validation_enabled",
    "INDEX_TTL_SECONDS": "ttl_seconds",
    "PURGE_INTERVAL_SECONDS": "purge_interval_seconds",
    "SEARCH_OVERFETCH_FACTOR": "search_overfetch_factor",
    "DEBOUNCE_SECONDS": "debounce_seconds",
    "BASE_DIRECTORY": "base_directory",
    "EXCLUSION_CONFIG_PATH": "exclusion_config_path",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "LOG_FILE_PATH": "log_file",
}

BOOLEAN_FIELDS = {
    "strict_dimensions",
    "incremental_enabled",
    "persist_metadata",
    "validation_enabled",
}


def parse_bool(value: Any) -> bool:
    """Parse a boolean from config text (true/false, 1/0, yes/no, on/off)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def read_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect config fields from environment variables.

    Unparseable booleans are dropped with a warning so the default applies.
    """
    values: dict[str, Any] = {}
    for env_var, field_name in ENV_MAPPING.items():
        raw = environ.get(env_var)
        if raw is None or raw == "":
            continue
        if field_name in BOOLEAN_FIELDS:
            try:
                values[field_name] = parse_bool(raw)
            except ValueError as e:
                logger.warning(f"Ignoring {env_var}: {e}")
            continue
        values[field_name] = raw
    return values


def load_config_file(config_file: Path) -> dict[str, Any]:
    """Read a JSON config file into a dict of config fields."""
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read config file: {e}", config_file=str(config_file)
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in config file: {e}", config_file=str(config_file)
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Config file must contain a JSON object", config_file=str(config_file)
        )
    return data


def load_config(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> IndexerConfig:
    """Load configuration from multiple sources with precedence.

    Precedence (highest to lowest):
    1. Explicit overrides
    2. Environment variables
    3. JSON config file
    4. Defaults

    Values that fail validation fall back to their defaults with a warning.
    """
    config_dict: dict[str, Any] = {}

    if config_file is not None:
        file_settings = load_config_file(Path(config_file))
        config_dict.update(file_settings)
        logger.debug(f"Loaded {len(file_settings)} settings from {config_file}")

    env_settings = read_env_overrides(os.environ if environ is None else environ)
    config_dict.update(env_settings)
    if env_settings:
        logger.debug(f"Applied {len(env_settings)} environment variables")

    config_dict.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return IndexerConfig(**config_dict)
    except ValueError as e:
        logger.warning(f"Configuration validation failed: {e}, using defaults")

    # Rebuild field by field so one bad value doesn't discard the rest
    valid: dict[str, Any] = {}
    for key, value in config_dict.items():
        if key not in IndexerConfig.__fields__:
            logger.warning(f"Ignoring unknown setting {key}")
            continue
        try:
            IndexerConfig(**{**valid, key: value})
        except ValueError as e:
            logger.warning(f"Ignoring invalid setting {key}={value}: {e}")
            continue
        valid[key] = value
    return IndexerConfig(**valid)
