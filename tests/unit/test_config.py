"""Unit tests for configuration loading."""

import json
from pathlib import Path

import pytest

from code_indexer.config import IndexerConfig, load_config, parse_bool
from code_indexer.config.config_loader import read_env_overrides
from code_indexer.errors import ConfigurationError


class TestIndexerConfig:
    """Test IndexerConfig model."""

    def test_defaults(self):
        config = IndexerConfig()

        assert config.qdrant_url == "http://localhost:6333"
        assert config.collection_name == "codebase"
        assert config.embedding_provider == "ollama"
        assert config.effective_embedding_model == "nomic-embed-text:v1.5"
        assert config.embedding_dimensions == 768
        assert config.batch_size == 10
        assert config.max_concurrency == 5
        assert config.incremental_enabled is True
        assert config.ttl_seconds == 604800
        assert config.purge_interval_seconds == 3600

    def test_state_paths_follow_base_directory(self, tmp_path):
        config = IndexerConfig(base_directory=tmp_path)

        assert config.state_file == tmp_path / ".indexer-state.json"
        assert config.stats_file == tmp_path / ".indexer-metadata.json"

    def test_provider_is_normalized(self):
        config = IndexerConfig(embedding_provider=" OpenAI ")

        assert config.embedding_provider == "openai"
        assert config.effective_embedding_model == "text-embedding-3-small"

    def test_explicit_model_wins(self):
        config = IndexerConfig(embedding_provider="voyage", embedding_model="voyage-code-3")

        assert config.effective_embedding_model == "voyage-code-3"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("embedding_provider", "cohere"),
            ("log_level", "chatty"),
            ("log_format", "xml"),
            ("max_concurrency", 0),
            ("batch_size", 1000),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            IndexerConfig(**{field: value})


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "1", "YES", " on ", True])
    def test_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "No", "off", False])
    def test_false(self, value):
        assert parse_bool(value) is False

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestReadEnvOverrides:
    def test_maps_variables_to_fields(self):
        values = read_env_overrides(
            {
                "QDRANT_URL": "http://qdrant:6333",
                "MAX_CONCURRENCY": "8",
                "ENABLE_INCREMENTAL_INDEXING": "false",
                "UNRELATED": "ignored",
            }
        )

        assert values == {
            "qdrant_url": "http://qdrant:6333",
            "max_concurrency": "8",
            "incremental_enabled": False,
        }

    def test_empty_and_invalid_booleans_are_skipped(self):
        values = read_env_overrides(
            {"COLLECTION_NAME": "", "PERSIST_METADATA": "sometimes"}
        )

        assert values == {}


class TestLoadConfig:
    """Precedence: overrides > environment > file > defaults."""

    def test_defaults_with_empty_environment(self):
        config = load_config(environ={})

        assert config.collection_name == "codebase"

    def test_environment_values(self):
        config = load_config(
            environ={"MAX_CONCURRENCY": "8", "INDEX_TTL_SECONDS": "60"}
        )

        assert config.max_concurrency == 8
        assert config.ttl_seconds == 60

    def test_file_then_env_then_overrides(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(
            json.dumps(
                {"collection_name": "from-file", "batch_size": 20, "max_concurrency": 2}
            )
        )

        config = load_config(
            config_file,
            environ={"COLLECTION_NAME": "from-env", "BATCH_SIZE": "30"},
            batch_size=40,
        )

        assert config.max_concurrency == 2
        assert config.collection_name == "from-env"
        assert config.batch_size == 40

    def test_none_overrides_are_ignored(self):
        config = load_config(environ={"COLLECTION_NAME": "from-env"}, collection_name=None)

        assert config.collection_name == "from-env"

    def test_invalid_value_falls_back_to_default(self):
        config = load_config(
            environ={"MAX_CONCURRENCY": "500", "COLLECTION_NAME": "kept"}
        )

        assert config.max_concurrency == 5
        assert config.collection_name == "kept"

    def test_unknown_file_settings_are_ignored(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"batch_size": 0, "color": "blue"}))

        config = load_config(config_file, environ={})

        assert config.batch_size == 10
        assert not hasattr(config, "color")

    def test_base_directory_override(self, tmp_path):
        config = load_config(environ={}, base_directory=tmp_path)

        assert config.base_directory == Path(tmp_path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read config file"):
            load_config(tmp_path / "missing.json", environ={})

    def test_invalid_json_raises(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text("{oops")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(config_file, environ={})

    def test_non_object_file_raises(self, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text("[1]")

        with pytest.raises(ConfigurationError, match="JSON object"):
            load_config(config_file, environ={})
