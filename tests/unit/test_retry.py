"""Tests for the bounded retry policy."""

from unittest.mock import Mock, patch

import pytest
import requests

from code_indexer.utils.retry import RetryError, RetryPolicy, is_transient_error


class TestIsTransientError:
    @pytest.mark.parametrize(
        "error",
        [
            ConnectionError("reset by peer"),
            TimeoutError(),
            RuntimeError("Rate limit exceeded"),
            RuntimeError("HTTP 503 Service Unavailable"),
            RuntimeError("upstream returned 429"),
        ],
    )
    def test_transient(self, error):
        assert is_transient_error(error)

    @pytest.mark.parametrize(
        "error",
        [ValueError("invalid api key"), KeyError("embedding"), RuntimeError("400")],
    )
    def test_permanent(self, error):
        assert not is_transient_error(error)

    @pytest.mark.parametrize("status_code,transient", [(500, True), (503, True), (404, False)])
    def test_http_errors_classified_by_status(self, status_code, transient):
        response = requests.Response()
        response.status_code = status_code
        error = requests.HTTPError(f"{status_code} Error", response=response)

        assert is_transient_error(error) is transient

    def test_status_code_attribute(self):
        error = RuntimeError("model is loading")
        error.status_code = 500

        assert is_transient_error(error)


class TestRetryPolicy:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_success_on_first_try(self):
        operation = Mock(return_value="ok")

        assert RetryPolicy().call(operation, 1, key="v") == "ok"
        operation.assert_called_once_with(1, key="v")

    @patch("code_indexer.utils.retry.time.sleep")
    def test_retries_transient_errors_until_success(self, mock_sleep):
        operation = Mock(side_effect=[ConnectionError("down"), TimeoutError(), "ok"])

        result = RetryPolicy(max_attempts=3).call(operation)

        assert result == "ok"
        assert operation.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("code_indexer.utils.retry.time.sleep")
    def test_gives_up_after_max_attempts(self, mock_sleep):
        operation = Mock(side_effect=ConnectionError("down"))

        with pytest.raises(RetryError) as exc_info:
            RetryPolicy(max_attempts=3).call(operation)

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ConnectionError)
        assert operation.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("code_indexer.utils.retry.time.sleep")
    def test_permanent_error_is_not_retried(self, mock_sleep):
        operation = Mock(side_effect=ValueError("invalid api key"))

        with pytest.raises(RetryError) as exc_info:
            RetryPolicy(max_attempts=5).call(operation)

        assert exc_info.value.attempts == 1
        mock_sleep.assert_not_called()

    @patch("code_indexer.utils.retry.time.sleep")
    def test_custom_retry_predicate(self, mock_sleep):
        operation = Mock(side_effect=[ValueError("flaky"), "ok"])

        policy = RetryPolicy(max_attempts=2, retry_on=lambda e: True)

        assert policy.call(operation) == "ok"

    def test_exponential_delay_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=False)

        assert policy.calculate_delay(1) == 1.0
        assert policy.calculate_delay(2) == 2.0
        assert policy.calculate_delay(3) == 4.0
        assert policy.calculate_delay(4) == 5.0

    def test_jitter_adds_up_to_thirty_percent(self):
        policy = RetryPolicy(base_delay=2.0, jitter=True)

        for _ in range(20):
            assert 2.2 <= policy.calculate_delay(1) <= 2.6
