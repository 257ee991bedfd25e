"""Unit tests for layered exclusion decisions and ignore-file parsing."""

import json

import pytest

from code_indexer.config.exclusions import ExclusionConfig
from code_indexer.utils.exclusion_matcher import ExclusionMatcher
from code_indexer.utils.ignore_parser import IgnoreParser, anchor_anywhere


def write(path, content="x = 1\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


class TestAnchorAnywhere:
    @pytest.mark.parametrize(
        "pattern,expected",
        [
            ("node_modules/**", "**/node_modules/**"),
            ("*.log", "*.log"),
            ("build/", "build/"),
            ("/dist/**", "/dist/**"),
            ("**/cache/**", "**/cache/**"),
            ("!docs/keep.md", "!**/docs/keep.md"),
        ],
    )
    def test_anchor_anywhere(self, pattern, expected):
        assert anchor_anywhere(pattern) == expected


class TestIgnoreParser:
    """Gitignore-compatible matching."""

    def test_basic_patterns(self, tmp_path):
        parser = IgnoreParser(tmp_path)
        parser.add_patterns(["*.key", "secrets/", "# comment", ""])

        assert parser.pattern_count == 2
        assert parser.matches(tmp_path / "config" / "api.key")
        assert parser.matches(tmp_path / "secrets", is_dir=True)
        assert parser.matches("secrets/token.txt")
        assert not parser.matches(tmp_path / "main.py")

    def test_negation(self, tmp_path):
        parser = IgnoreParser(tmp_path)
        parser.add_patterns(["*.log", "!keep.log"])

        assert parser.matches("debug.log")
        assert not parser.matches("keep.log")
        assert parser.get_matching_pattern("keep.log") is None

    def test_load_file(self, tmp_path):
        write(tmp_path / ".indexerignore", "# private\n*.pem\ngenerated/\n")
        parser = IgnoreParser(tmp_path)

        assert parser.load_file(".indexerignore") == 2
        assert parser.matches("certs/server.pem")
        assert parser.matches("generated/models.py")

    def test_load_missing_file(self, tmp_path):
        assert IgnoreParser(tmp_path).load_file(".indexerignore") == 0

    def test_get_matching_pattern(self, tmp_path):
        parser = IgnoreParser(tmp_path, anchor_patterns=True)
        parser.add_patterns(["*.log", "node_modules/**"])

        assert parser.get_matching_pattern("pkg/node_modules/a/b.js") == "**/node_modules/**"
        assert parser.get_matching_pattern("app.log") == "*.log"

    def test_paths_outside_root(self, tmp_path):
        parser = IgnoreParser(tmp_path / "project")
        parser.add_patterns(["*.log"])

        assert parser.matches(tmp_path / "elsewhere" / "server.log")

    def test_clear(self, tmp_path):
        parser = IgnoreParser(tmp_path)
        parser.add_patterns(["*.log"])
        parser.clear()

        assert parser.patterns == []
        assert not parser.matches("debug.log")


class TestExclusionMatcher:
    """Rule ordering and content checks."""

    def test_default_folder_exclusion(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)
        path = write(tmp_path / "web" / "node_modules" / "react" / "index.js")

        decision = matcher.explain(path)

        assert decision.excluded
        assert decision.category == "folder"
        assert decision.pattern == "**/node_modules/**"
        assert decision.reason == "folder: **/node_modules/**"

    def test_regular_source_file_is_included(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)
        decision = matcher.explain(write(tmp_path / "src" / "app.py"))

        assert not decision.excluded
        assert decision.reason == "no rule matched"

    def test_inclusion_override_wins(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)
        path = write(tmp_path / "node_modules" / "README.md", "# readme\n")

        decision = matcher.explain(path)

        assert not decision.excluded
        assert decision.category == "inclusion_override"

    def test_file_extension_and_exact_name_rules(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)

        assert matcher.explain(write(tmp_path / "server.log")).category == "file"
        assert matcher.explain(write(tmp_path / "notes.bak")).category == "extension"
        assert matcher.explain(write(tmp_path / ".gitkeep")).category == "exact_name"

    def test_relative_paths_resolve_against_root(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)
        write(tmp_path / "dist" / "bundle.js")

        assert matcher.is_excluded("dist/bundle.js")

    def test_language_specific_rules(self, tmp_path):
        config = ExclusionConfig(
            language_specific={"python": {"folders": [".tox/**"], "files": ["*.pyo"]}}
        )
        matcher = ExclusionMatcher(tmp_path, config=config)

        assert matcher.explain(write(tmp_path / ".tox" / "env.py")).category == (
            "language:python"
        )
        assert matcher.explain(write(tmp_path / "mod.pyo")).category == "language:python"

    def test_custom_rules(self, tmp_path):
        config = ExclusionConfig(custom_rules={"exclude_test_files": True})
        matcher = ExclusionMatcher(tmp_path, config=config)

        assert matcher.explain(write(tmp_path / "test_app.py")).category == (
            "custom:exclude_test_files"
        )
        assert not matcher.is_excluded(write(tmp_path / "app.py"))

    def test_ignore_file(self, tmp_path):
        write(tmp_path / ".indexerignore", "generated/\n")
        matcher = ExclusionMatcher(tmp_path)

        decision = matcher.explain(write(tmp_path / "generated" / "api.py"))
        assert decision.category == "ignore_file"

        without = ExclusionMatcher(tmp_path, use_ignore_file=False)
        assert not without.is_excluded(tmp_path / "generated" / "api.py")

    def test_size_limit(self, tmp_path):
        config = ExclusionConfig(
            exclusions={"size_limits": {"max_file_size_bytes": 10}}
        )
        matcher = ExclusionMatcher(tmp_path, config=config)

        assert matcher.explain(write(tmp_path / "big.py", "x" * 11)).category == "size"
        assert not matcher.is_excluded(write(tmp_path / "small.py", "x = 1"))

    def test_empty_files(self, tmp_path):
        path = write(tmp_path / "empty.py", "")

        assert not ExclusionMatcher(tmp_path).is_excluded(path)
        config = ExclusionConfig(exclusions={"content_based": {"empty_files": True}})
        assert ExclusionMatcher(tmp_path, config=config).explain(path).category == "empty"

    def test_binary_files(self, tmp_path):
        path = write(tmp_path / "blob.dat", b"\x89PNG\x00\x01\x02")

        assert ExclusionMatcher(tmp_path).explain(path).category == "binary"

    def test_minified_files(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)
        long_line = "var a=1;" * 200

        assert matcher.explain(write(tmp_path / "app.js", long_line)).category == "minified"
        assert not matcher.is_excluded(write(tmp_path / "app2.js", "var a = 1;\n" * 50))

    def test_missing_file_uses_patterns_only(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)

        assert matcher.is_excluded(tmp_path / "build" / "gone.js")
        assert not matcher.is_excluded(tmp_path / "gone.py")

    def test_directory_exclusion(self, tmp_path):
        matcher = ExclusionMatcher(tmp_path)

        assert matcher.is_directory_excluded(tmp_path / "node_modules")
        assert matcher.is_directory_excluded(tmp_path / "pkg" / "__pycache__")
        assert not matcher.is_directory_excluded(tmp_path / "src")

    def test_has_inclusion_overrides(self, tmp_path):
        assert ExclusionMatcher(tmp_path).has_inclusion_overrides
        config = ExclusionConfig(inclusion_overrides={"patterns": []})
        assert not ExclusionMatcher(tmp_path, config=config).has_inclusion_overrides

    def test_reload_picks_up_config_changes(self, tmp_path):
        config_path = tmp_path / "exclusions.json"
        config_path.write_text(json.dumps({"exclusions": {"files": {"patterns": []}}}))
        matcher = ExclusionMatcher(tmp_path, config_path=config_path)
        path = write(tmp_path / "server.log")

        assert matcher.explain(path).category == "extension"

        config_path.write_text(
            json.dumps(
                {
                    "exclusions": {
                        "files": {"patterns": []},
                        "extensions": {"patterns": []},
                    }
                }
            )
        )
        matcher.reload()

        assert not matcher.is_excluded(path)
