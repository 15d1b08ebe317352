"""Failure classification and backoff for Gemini calls.

Upstream error text is not a stable contract, so every pattern the
orchestrator relies on is kept in this module and nowhere else.
"""

from __future__ import annotations

import random
import re

from wava.core.errors import ErrorKind
from wava.core.types import ErrorClassification

MAX_SUGGESTED_WAIT_MS = 30_000

BACKOFF_BASE_MS = 600
BACKOFF_CAP_MS = 8_000
BACKOFF_JITTER_MS = 250

_MALFORMED_PAYLOAD_MARKERS = (
    "Invalid JSON payload",
    "Cannot find field",
    'Unknown name "role"',
    'Unknown name "parts"',
)

_RETRY_AFTER_MS_RE = re.compile(r"retry\s*(?:after|in)\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_RETRY_AFTER_S_RE = re.compile(r"retry\s*(?:after|in)\s*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)
_STATUS_TOKEN_RE = re.compile(r"(?<!\d)([45]\d\d)(?!\d)")
_API_KEY_RE = re.compile(r"API key", re.IGNORECASE)
_RATE_LIMIT_RE = re.compile(r"rate\s*limit|resource[\s_]*exhausted", re.IGNORECASE)
_NOT_FOUND_RE = re.compile(r"not\s*found", re.IGNORECASE)
_NETWORK_RE = re.compile(r"network|timeout|timed out|fetch|connection", re.IGNORECASE)


def parse_retry_after_ms(message: str) -> int | None:
    """Read a ``retry after 2s`` / ``retry after 2000ms`` hint, clamped to 30s."""

    ms_match = _RETRY_AFTER_MS_RE.search(message)
    if ms_match:
        return min(MAX_SUGGESTED_WAIT_MS, round(float(ms_match.group(1))))

    s_match = _RETRY_AFTER_S_RE.search(message)
    if s_match:
        return min(MAX_SUGGESTED_WAIT_MS, round(float(s_match.group(1)) * 1000))

    return None


def backoff_ms(
    attempt: int,
    base_ms: int = BACKOFF_BASE_MS,
    cap_ms: int = BACKOFF_CAP_MS,
    jitter_ms: int = BACKOFF_JITTER_MS,
    rng: random.Random | None = None,
) -> int:
    """Exponential backoff for the 1-based retry ``attempt``: 600, 1200, 2400... plus jitter."""

    exp = min(cap_ms, base_ms * 2 ** (max(attempt, 1) - 1))
    jitter = (rng or random).randrange(jitter_ms) if jitter_ms > 0 else 0
    return exp + jitter


def classify_error(exc: BaseException) -> ErrorClassification:
    message = str(exc)
    statuses = _status_codes(exc, message)

    if 400 in statuses and any(marker in message for marker in _MALFORMED_PAYLOAD_MARKERS):
        return ErrorClassification(ErrorKind.MALFORMED_REQUEST, retryable=False, advance_to_next_model=False)

    if statuses & {401, 403} or _API_KEY_RE.search(message):
        return ErrorClassification(ErrorKind.AUTH, retryable=False, advance_to_next_model=False)

    if 429 in statuses or _RATE_LIMIT_RE.search(message):
        return ErrorClassification(
            ErrorKind.QUOTA,
            retryable=True,
            advance_to_next_model=True,
            suggested_wait_ms=parse_retry_after_ms(message),
        )

    if 404 in statuses or _NOT_FOUND_RE.search(message):
        return ErrorClassification(ErrorKind.NOT_FOUND, retryable=False, advance_to_next_model=True)

    if statuses & {500, 502, 503, 504}:
        return ErrorClassification(ErrorKind.SERVER, retryable=True, advance_to_next_model=True)

    if _NETWORK_RE.search(message):
        return ErrorClassification(ErrorKind.NETWORK, retryable=True, advance_to_next_model=True)

    return ErrorClassification(ErrorKind.UNKNOWN, retryable=False, advance_to_next_model=True)


def _status_codes(exc: BaseException, message: str) -> set[int]:
    codes = {int(token) for token in _STATUS_TOKEN_RE.findall(message)}
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        codes.add(status_code)
    return codes
