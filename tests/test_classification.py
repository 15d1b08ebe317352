from __future__ import annotations

import random

import pytest

from wava.core.errors import ErrorKind
from wava.gemini.classification import backoff_ms, classify_error, parse_retry_after_ms
from wava.gemini.client import GeminiAPIError


@pytest.mark.parametrize(
    ("message", "status_code", "expected"),
    [
        ('[400 INVALID_ARGUMENT] Invalid JSON payload received. Unknown name "foo"', 400, ErrorKind.MALFORMED_REQUEST),
        ('[400 INVALID_ARGUMENT] Unknown name "parts" at contents[0]', 400, ErrorKind.MALFORMED_REQUEST),
        ("[400 INVALID_ARGUMENT] API key not valid. Please pass a valid API key.", 400, ErrorKind.AUTH),
        ("[403 PERMISSION_DENIED] The caller does not have permission", 403, ErrorKind.AUTH),
        ("[429 RESOURCE_EXHAUSTED] Quota exceeded", 429, ErrorKind.QUOTA),
        ("rate limit hit", None, ErrorKind.QUOTA),
        ("[404 NOT_FOUND] models/gemini-9 is not found", 404, ErrorKind.NOT_FOUND),
        ("[503 UNAVAILABLE] The model is overloaded", 503, ErrorKind.SERVER),
        ("network error while calling Gemini: connection refused", None, ErrorKind.NETWORK),
        ("timeout while calling Gemini: read timed out", None, ErrorKind.NETWORK),
        ("something odd happened", None, ErrorKind.UNKNOWN),
    ],
)
def test_classify_error_patterns(message, status_code, expected):
    result = classify_error(GeminiAPIError(message, status_code=status_code))

    assert result.kind is expected


def test_auth_and_malformed_do_not_retry_or_advance():
    for message in ("API key not valid", 'HTTP 400: Cannot find field "x"'):
        result = classify_error(Exception(message))
        assert result.retryable is False
        assert result.advance_to_next_model is False


def test_retryable_kinds_also_advance():
    for message in ("429 Too Many Requests", "500 Internal", "fetch failed"):
        result = classify_error(Exception(message))
        assert result.retryable is True
        assert result.advance_to_next_model is True


def test_not_found_and_unknown_advance_without_retry():
    for message in ("model not found", "mystery"):
        result = classify_error(Exception(message))
        assert result.retryable is False
        assert result.advance_to_next_model is True


def test_status_code_must_be_a_standalone_token():
    result = classify_error(Exception("request id 15034 failed strangely"))

    assert result.kind is ErrorKind.UNKNOWN


def test_plain_400_without_marker_is_not_malformed():
    result = classify_error(GeminiAPIError("[400 INVALID_ARGUMENT] bad temperature", status_code=400))

    assert result.kind is ErrorKind.UNKNOWN


def test_classification_is_idempotent():
    exc = GeminiAPIError("[429 RESOURCE_EXHAUSTED] rate limit, retry after 2s", status_code=429)

    assert classify_error(exc) == classify_error(exc)


def test_quota_carries_suggested_wait():
    result = classify_error(Exception("rate limit, retry after 2s"))

    assert result.kind is ErrorKind.QUOTA
    assert result.suggested_wait_ms == 2000


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("retry after 2s", 2000),
        ("Please retry in 1.5s", 1500),
        ("retry after 750ms", 750),
        ("retry after 120s", 30_000),
        ("(retry after 37.2s)", 30_000),
        ("no hint here", None),
    ],
)
def test_parse_retry_after(message, expected):
    assert parse_retry_after_ms(message) == expected


def test_backoff_grows_and_caps():
    no_jitter = {"jitter_ms": 0}

    assert backoff_ms(1, **no_jitter) == 600
    assert backoff_ms(2, **no_jitter) == 1200
    assert backoff_ms(3, **no_jitter) == 2400
    assert backoff_ms(10, **no_jitter) == 8000


def test_backoff_jitter_is_bounded():
    rng = random.Random(7)

    for _ in range(50):
        value = backoff_ms(1, rng=rng)
        assert 600 <= value < 850
