from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from wava.core.config import Settings, get_settings
from wava.core.credentials import require_credential, resolve_api_key
from wava.core.errors import (
    ErrorKind,
    GatewayError,
    MissingCredentialError,
    ModelQueueExhaustedError,
    PredictionFailedError,
    describe_error,
)
from wava.core.logging import get_logger, setup_logging
from wava.core.types import GenerationRequest, PredictionJob, PredictionStatus


def test_settings_reject_unknown_scheduler():
    with pytest.raises(ValidationError):
        Settings(SDXL_SCHEDULER="Kyuvin")


def test_settings_reject_negative_retries():
    with pytest.raises(ValidationError):
        Settings(GEMINI_MAX_RETRIES_PER_MODEL=-1)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_resolve_api_key_skips_blank_and_placeholder():
    assert resolve_api_key(None, "  ", "YOUR_API_KEY_HERE", " real ") == "real"
    assert resolve_api_key("") is None


def test_require_credential_names_the_service():
    with pytest.raises(MissingCredentialError) as exc_info:
        require_credential("replicate", None)

    assert exc_info.value.kind is ErrorKind.AUTH
    assert "Replicate" in describe_error(exc_info.value)


def test_describe_error_messages():
    exhausted = ModelQueueExhaustedError(status_code=429, message="internal detail", kind=ErrorKind.QUOTA)
    failed = PredictionFailedError(status_code=502, message="x", kind=ErrorKind.JOB_FAILED, reason="NSFW")
    client_side = GatewayError(status_code=400, message="Unsupported SDXL scheduler 'x'.")

    assert describe_error(exhausted).startswith("No AI model responded. The AI service is rate limited")
    assert describe_error(failed) == "Image generation failed: NSFW"
    assert describe_error(client_side) == "Unsupported SDXL scheduler 'x'."
    assert "internal" not in describe_error(GatewayError(status_code=500, message="internal trace"))
    assert describe_error(RuntimeError("boom")).startswith("Something went wrong")


def test_generation_request_needs_contents():
    with pytest.raises(GatewayError) as exc_info:
        GenerationRequest(contents=())

    assert exc_info.value.code == "empty_contents"


def test_prediction_status_ranks():
    assert PredictionStatus.QUEUED.rank < PredictionStatus.PROCESSING.rank < PredictionStatus.FAILED.rank
    assert PredictionStatus.CANCELED.is_terminal
    assert not PredictionStatus.STARTING.is_terminal


def test_prediction_job_from_record():
    job = PredictionJob.from_record({"id": "p1", "status": "failed", "error": "bad input"})

    assert job.is_terminal
    assert job.error == "bad input"

    with pytest.raises(GatewayError):
        PredictionJob.from_record({"status": "succeeded"})


def test_setup_logging_is_idempotent():
    setup_logging()
    setup_logging()

    handlers = [h for h in logging.getLogger("wava").handlers if h.get_name() == "wava-console"]
    assert len(handlers) == 1
    assert get_logger("gemini.fallback").name == "wava.gemini.fallback"
