from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    AUTH = "AUTH"
    QUOTA = "QUOTA"
    NOT_FOUND = "NOT_FOUND"
    SERVER = "SERVER"
    NETWORK = "NETWORK"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    PARSE_FAILURE = "PARSE_FAILURE"
    TIMEOUT = "TIMEOUT"
    JOB_FAILED = "JOB_FAILED"
    UNKNOWN = "UNKNOWN"


@dataclass(eq=False)
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None
    param: str | None = None
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class GenerationAbortedError(GatewayError):
    """AUTH or MALFORMED_REQUEST failure that stops the whole model queue."""

    model: str | None = None


@dataclass(eq=False)
class ModelQueueExhaustedError(GatewayError):
    last_error: BaseException | None = None
    attempted_models: tuple[str, ...] = ()


@dataclass(eq=False)
class ResponseParseError(GatewayError):
    missing_fields: tuple[str, ...] = ()


@dataclass(eq=False)
class FeatureSuggestionError(GatewayError):
    product_name: str | None = None


@dataclass(eq=False)
class MissingCredentialError(GatewayError):
    service: str = "gemini"


@dataclass(eq=False)
class PredictionRequestError(GatewayError):
    pass


@dataclass(eq=False)
class PredictionTimeoutError(GatewayError):
    prediction_id: str | None = None
    attempts: int = 0


@dataclass(eq=False)
class PredictionFailedError(GatewayError):
    prediction_id: str | None = None
    reason: str | None = None


_KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTH: "The Gemini API key was rejected. Check the key registered in settings.",
    ErrorKind.QUOTA: "The AI service is rate limited right now. Wait a moment and try again.",
    ErrorKind.NOT_FOUND: "The requested AI model is not available. Try again with the default models.",
    ErrorKind.SERVER: "The AI service is temporarily unavailable. Please try again shortly.",
    ErrorKind.NETWORK: "Could not reach the AI service. Check your network connection and try again.",
    ErrorKind.MALFORMED_REQUEST: "The generation request was rejected as invalid. Check the submitted inputs.",
    ErrorKind.PARSE_FAILURE: "The AI response could not be understood. Please try generating again.",
    ErrorKind.TIMEOUT: "Image generation timed out. Please try again.",
    ErrorKind.JOB_FAILED: "Image generation failed. Please try again.",
    ErrorKind.UNKNOWN: "Something went wrong while generating. Please try again.",
}


def describe_error(exc: BaseException) -> str:
    """Short, user-facing sentence for any failure raised by the gateway."""

    if isinstance(exc, MissingCredentialError):
        return exc.message

    if isinstance(exc, ModelQueueExhaustedError):
        hint = _KIND_MESSAGES.get(exc.kind, _KIND_MESSAGES[ErrorKind.UNKNOWN])
        return f"No AI model responded. {hint}"

    if isinstance(exc, FeatureSuggestionError):
        hint = _KIND_MESSAGES.get(exc.kind, _KIND_MESSAGES[ErrorKind.UNKNOWN])
        return f"{exc.message} {hint}"

    if isinstance(exc, PredictionFailedError) and exc.reason:
        return f"Image generation failed: {exc.reason}"

    if isinstance(exc, PredictionRequestError):
        return f"Image generation request failed: {exc.message}"

    if isinstance(exc, GatewayError):
        if exc.kind is ErrorKind.UNKNOWN and exc.status_code < 500:
            return exc.message
        return _KIND_MESSAGES[exc.kind]

    return _KIND_MESSAGES[ErrorKind.UNKNOWN]
