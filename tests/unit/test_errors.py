"""Tests for structured indexer errors and CLI rendering."""

from code_indexer.errors import (
    ConfigurationError,
    EmbeddingFailure,
    ErrorCategory,
    FileIndexingError,
    IndexerError,
    IndexNotReadyError,
    NotFoundError,
    StoreFailure,
    handle_exception,
)


class TestIndexerErrors:
    def test_not_found(self):
        error = NotFoundError("/repo/missing.py")

        assert isinstance(error, IndexerError)
        assert error.category == ErrorCategory.FILE_SYSTEM
        assert str(error) == "File not found: /repo/missing.py"
        assert error.details == {"path": "/repo/missing.py"}

    def test_embedding_failure_reports_attempts(self):
        error = EmbeddingFailure(3, "timeout")

        assert error.attempts == 3
        assert "after 3 attempts: timeout" in error.message
        assert error.suggestion

    def test_store_failure(self):
        error = StoreFailure("upsert points", 2)

        assert error.category == ErrorCategory.STORAGE
        assert error.message == (
            "Failed to upsert points in Qdrant after 2 attempts: unknown error"
        )

    def test_index_not_ready(self):
        error = IndexNotReadyError("codebase")

        assert error.category == ErrorCategory.VALIDATION
        assert "collection 'codebase' not found" in error.message
        assert error.details == {"collection": "codebase"}

    def test_file_indexing_error_keeps_cause(self):
        cause = RuntimeError("boom")
        error = FileIndexingError("/repo/a.py", cause)

        assert error.cause is cause
        assert str(error) == "Failed to index file /repo/a.py: boom"

    def test_configuration_error_details(self):
        assert ConfigurationError("bad").details is None
        assert ConfigurationError("bad", "settings.json").details == {
            "config_file": "settings.json"
        }


class TestFormatting:
    def test_plain_format(self):
        error = NotFoundError("/a.py")

        formatted = error.format(use_color=False)

        assert formatted.splitlines() == [
            "Error: File not found: /a.py",
            "Suggestion: Verify the path exists and is a regular file",
            "  path: /a.py",
        ]

    def test_color_format(self):
        formatted = NotFoundError("/a.py").format(use_color=True)

        assert "\033[91m" in formatted


class TestHandleException:
    def test_indexer_error(self):
        message, code = handle_exception(NotFoundError("/a.py"), use_color=False)

        assert message.startswith("Error: File not found")
        assert code == 1

    def test_generic_error(self):
        message, code = handle_exception(RuntimeError("oops"), use_color=False)

        assert message == "Error: oops"
        assert code == 1

    def test_verbose_appends_traceback(self):
        try:
            raise RuntimeError("oops")
        except RuntimeError as e:
            message, _ = handle_exception(e, use_color=False, verbose=True)

        assert "Traceback:" in message
