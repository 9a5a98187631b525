"""Unit tests for the error taxonomy and classifier."""

import json

import httpx
import pytest

from chatstream.errors import (
    CompletionError,
    ContextLengthExceededError,
    HTTPStatusError,
    InsufficientCreditsError,
    ModelNotFoundError,
    NetworkError,
    RateLimitError,
    StreamingInterruptedError,
    classify_response,
    classify_transport_error,
    extract_error_message,
    parse_retry_after,
)


class TestClassifyResponse:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (429, RateLimitError),
            (402, InsufficientCreditsError),
            (404, ModelNotFoundError),
            (413, ContextLengthExceededError),
            (400, HTTPStatusError),
            (401, HTTPStatusError),
            (500, HTTPStatusError),
            (503, HTTPStatusError),
            (418, HTTPStatusError),
        ],
    )
    def test_status_maps_to_class(self, status, expected):
        error = classify_response(status)
        assert type(error) is expected
        assert isinstance(error, CompletionError)
        assert error.status_code == status

    def test_rate_limit_reads_retry_after(self):
        error = classify_response(429, {"Retry-After": "12"})
        assert error.retry_after == 12
        assert error.retryable
        assert "12 seconds" in error.message
        assert "12 seconds" in error.suggestion

    def test_rate_limit_without_header(self):
        error = classify_response(429, httpx.Headers())
        assert error.retry_after is None
        assert "few moments" in error.message

    def test_server_message_is_surfaced_verbatim(self):
        body = json.dumps({"error": {"message": "temperature must be <= 2", "code": 400}})
        error = classify_response(400, {}, body.encode())
        assert error.server_message == "temperature must be <= 2"
        assert error.message == "Bad request: temperature must be <= 2"
        assert not error.retryable

    def test_unknown_status_with_top_level_message(self):
        error = classify_response(451, {}, b'{"message": "blocked in region"}')
        assert error.message == "HTTP error 451: blocked in region"

    def test_server_error_is_retryable_with_suggestion(self):
        error = classify_response(502, {}, b"<html>bad gateway</html>")
        assert error.retryable
        assert error.server_message is None
        assert error.message.startswith("Service unavailable")
        assert "temporary" in error.suggestion

    def test_context_length_has_remediation(self):
        error = classify_response(413)
        assert error.code == "context_length_exceeded"
        assert "shorten" in error.suggestion


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [("30", 30), (" 5 ", 5), ("0", 0), ("-3", 0), ("soon", None), (None, None),
         ("Wed, 21 Oct 2015 07:28:00 GMT", None)],
    )
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected

    @pytest.mark.parametrize(
        "body,expected",
        [
            (b'{"error": {"message": "nope"}}', "nope"),
            (b'{"error": "flat"}', "flat"),
            (b'{"message": "top"}', "top"),
            (b'{"other": 1}', None),
            (b"not json", None),
            (b"", None),
            (None, None),
        ],
    )
    def test_extract_error_message(self, body, expected):
        assert extract_error_message(body) == expected


class TestTransportErrors:
    def test_timeout(self):
        error = classify_transport_error(httpx.ReadTimeout("read timed out"))
        assert isinstance(error, NetworkError)
        assert error.message == "Request timed out. Please try again."
        assert error.retryable
        assert error.details["exception"] == "ReadTimeout"

    def test_connect_error(self):
        error = classify_transport_error(httpx.ConnectError("refused"))
        assert "Could not connect" in error.message

    def test_other_transport_error(self):
        error = classify_transport_error(httpx.RemoteProtocolError("peer closed"))
        assert error.message == "Network error: peer closed"
        assert error.suggestion


def test_streaming_interrupted_keeps_partial_content():
    error = StreamingInterruptedError(partial_content="Once upon")
    assert error.partial_content == "Once upon"
    assert error.code == "streaming_interrupted"
    assert not error.retryable
    assert str(error) == "Connection was interrupted during streaming."
