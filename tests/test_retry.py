"""Tests for retry logic with exponential backoff."""

from unittest.mock import MagicMock

import pytest

from docsort.utils.retry import (
    NON_RETRYABLE_STATUS_CODES,
    RETRYABLE_STATUS_CODES,
    _extract_status_code,
    is_retryable,
    retry_with_backoff,
)


class MockHTTPException(Exception):
    """Mock HTTP exception with status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


# Tests for _extract_status_code


def test_extract_status_code_from_attribute():
    """Test extracting status code from status_code attribute."""
    exception = MockHTTPException("Server error", 500)
    assert _extract_status_code(exception) == 500


def test_extract_status_code_from_code_attribute():
    """Test extracting status code from code attribute (google-genai APIError)."""
    exception = Exception("Error")
    exception.code = 429  # type: ignore
    assert _extract_status_code(exception) == 429


def test_extract_status_code_from_response():
    """Test extracting status code from response.status_code."""
    exception = Exception("Error")
    exception.response = MagicMock()  # type: ignore
    exception.response.status_code = 503  # type: ignore
    assert _extract_status_code(exception) == 503


def test_extract_status_code_none():
    """Test returning None when no status code found."""
    assert _extract_status_code(Exception("Generic error")) is None


# Tests for is_retryable


def test_non_retryable_status_codes():
    for status_code in NON_RETRYABLE_STATUS_CODES:
        assert is_retryable(MockHTTPException(f"Error {status_code}", status_code)) is False


def test_retryable_status_codes():
    for status_code in RETRYABLE_STATUS_CODES:
        assert is_retryable(MockHTTPException(f"Error {status_code}", status_code)) is True


def test_network_errors_are_retryable():
    assert is_retryable(TimeoutError("slow")) is True
    assert is_retryable(ConnectionResetError("reset")) is True
    assert is_retryable(Exception("Read timed out")) is True
    assert is_retryable(Exception("Connection refused by host")) is True


def test_unknown_errors_are_not_retryable():
    assert is_retryable(ValueError("bad input")) is False


def test_client_error_wins_over_timeout_message():
    """A 400 mentioning a timeout is still a client error."""
    assert is_retryable(MockHTTPException("timeout parameter invalid", 400)) is False


# Tests for retry_with_backoff


def test_success_on_first_attempt():
    sleep = MagicMock()
    func = MagicMock(return_value="ok", __name__="func")

    wrapped = retry_with_backoff(max_retries=2, sleep=sleep)(func)

    assert wrapped("a", key="b") == "ok"
    func.assert_called_once_with("a", key="b")
    sleep.assert_not_called()


def test_retries_transient_error_then_succeeds():
    sleep = MagicMock()
    func = MagicMock(
        side_effect=[MockHTTPException("busy", 503), "ok"],
        __name__="func",
    )

    wrapped = retry_with_backoff(max_retries=2, base_delay=1.0, max_jitter=0.0, sleep=sleep)(func)

    assert wrapped() == "ok"
    assert func.call_count == 2
    sleep.assert_called_once_with(1.0)


def test_exponential_delays():
    sleep = MagicMock()
    func = MagicMock(
        side_effect=[TimeoutError("t"), TimeoutError("t"), TimeoutError("t"), "ok"],
        __name__="func",
    )

    wrapped = retry_with_backoff(max_retries=3, base_delay=0.5, max_jitter=0.0, sleep=sleep)(func)

    assert wrapped() == "ok"
    assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0, 2.0]


def test_gives_up_after_max_retries():
    sleep = MagicMock()
    func = MagicMock(side_effect=MockHTTPException("rate limited", 429), __name__="func")

    wrapped = retry_with_backoff(max_retries=2, max_jitter=0.0, sleep=sleep)(func)

    with pytest.raises(MockHTTPException):
        wrapped()
    assert func.call_count == 3
    assert sleep.call_count == 2


def test_non_retryable_error_raised_immediately():
    sleep = MagicMock()
    func = MagicMock(side_effect=MockHTTPException("unauthorized", 401), __name__="func")

    wrapped = retry_with_backoff(max_retries=5, sleep=sleep)(func)

    with pytest.raises(MockHTTPException):
        wrapped()
    func.assert_called_once()
    sleep.assert_not_called()


def test_zero_retries_calls_once():
    sleep = MagicMock()
    func = MagicMock(side_effect=TimeoutError("t"), __name__="func")

    wrapped = retry_with_backoff(max_retries=0, sleep=sleep)(func)

    with pytest.raises(TimeoutError):
        wrapped()
    func.assert_called_once()
    sleep.assert_not_called()


def test_jitter_is_bounded(monkeypatch):
    sleep = MagicMock()
    monkeypatch.setattr("docsort.utils.retry.random.random", lambda: 1.0)
    func = MagicMock(side_effect=[TimeoutError("t"), "ok"], __name__="func")

    wrapped = retry_with_backoff(max_retries=1, base_delay=1.0, max_jitter=0.5, sleep=sleep)(func)
    wrapped()

    sleep.assert_called_once_with(1.5)


def test_preserves_function_metadata():
    @retry_with_backoff()
    def documented():
        """Docstring."""
        return 1

    assert documented.__name__ == "documented"
    assert documented.__doc__ == "Docstring."
