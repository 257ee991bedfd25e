"""Gitignore-compatible pattern matching using the pathspec library.

Handles negation patterns, globstar (**), directory markers and
root-relative patterns. Used both for ``.indexerignore`` files and for
each category of the exclusion configuration.

Example usage:
    parser = IgnoreParser(project_root)
    parser.load_file(Path(".indexerignore"))

    if parser.matches("src/secret.key"):
        print("File should be ignored")
"""

from pathlib import Path

import pathspec

from ..indexer_logging import get_logger

logger = get_logger()


def anchor_anywhere(pattern: str) -> str:
    """Make a pattern that contains a slash match at any depth.

    Gitignore anchors ``node_modules/**`` to the root because of the inner
    slash; exclusion patterns are meant to match wherever the folder lives.
    Patterns starting with ``/`` or ``**/`` keep their meaning.
    """
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if "/" in body.rstrip("/") and not body.startswith(("/", "**/")):
        body = f"**/{body}"
    return f"!{body}" if negated else body


class IgnoreParser:
    """Gitignore-compatible pattern matcher rooted at a project directory."""

    def __init__(self, project_root: Path | str, anchor_patterns: bool = False):
        self.project_root = Path(project_root).resolve()
        self.anchor_patterns = anchor_patterns
        self._patterns: list[str] = []
        self._spec: pathspec.PathSpec | None = None
        self._single_specs: list[tuple[str, pathspec.PathSpec]] = []

    def load_file(self, ignore_file: Path | str) -> int:
        """Load patterns from an ignore file.

        Returns:
            Number of patterns loaded from the file.
        """
        ignore_path = Path(ignore_file)
        if not ignore_path.is_absolute():
            ignore_path = self.project_root / ignore_path

        if not ignore_path.exists():
            return 0

        try:
            lines = ignore_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Could not read {ignore_path}: {e}")
            return 0

        count_before = len(self._patterns)
        self.add_patterns(lines)
        return len(self._patterns) - count_before

    def add_patterns(self, patterns: list[str]) -> None:
        """Add gitignore-style patterns; blanks and comments are skipped."""
        for pattern in patterns:
            pattern = pattern.strip()
            if not pattern or pattern.startswith("#"):
                continue
            if self.anchor_patterns:
                pattern = anchor_anywhere(pattern)
            self._patterns.append(pattern)

        self._rebuild_spec()

    def _rebuild_spec(self) -> None:
        if not self._patterns:
            self._spec = None
            self._single_specs = []
            return

        self._spec = pathspec.PathSpec.from_lines(
            pathspec.patterns.GitWildMatchPattern, self._patterns
        )
        self._single_specs = [
            (
                pattern,
                pathspec.PathSpec.from_lines(
                    pathspec.patterns.GitWildMatchPattern, [pattern]
                ),
            )
            for pattern in self._patterns
            if not pattern.startswith("!")
        ]

    def to_relative(self, path: Path | str) -> str:
        """Express a path relative to the project root with forward slashes.

        Absolute paths outside the root are matched by their full path
        without the leading slash, so unanchored patterns still apply.
        """
        path = Path(path)
        if path.is_absolute():
            resolved = path.resolve()
            try:
                path = resolved.relative_to(self.project_root)
            except ValueError:
                return resolved.as_posix().lstrip("/")
        return path.as_posix()

    def matches(self, path: Path | str, is_dir: bool = False) -> bool:
        """Check if a path matches (honoring negations)."""
        if self._spec is None:
            return False

        rel = self.to_relative(path)
        if is_dir:
            rel = rel.rstrip("/") + "/"
        return self._spec.match_file(rel)

    def get_matching_pattern(
        self, path: Path | str, is_dir: bool = False
    ) -> str | None:
        """Return the first positive pattern that matches, for diagnostics."""
        if not self.matches(path, is_dir=is_dir):
            return None

        rel = self.to_relative(path)
        if is_dir:
            rel = rel.rstrip("/") + "/"
        for pattern, spec in self._single_specs:
            if spec.match_file(rel):
                return pattern
        return None

    @property
    def patterns(self) -> list[str]:
        return self._patterns.copy()

    @property
    def pattern_count(self) -> int:
        return len(self._patterns)

    def clear(self) -> None:
        self._patterns.clear()
        self._rebuild_spec()
