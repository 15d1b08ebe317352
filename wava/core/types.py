from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .errors import ErrorKind, GatewayError

ModelIdentifier = str

JSON_MIME_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True, slots=True)
class InlineDataPart:
    data: str
    mime_type: str

    def to_payload(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


Part = Union[TextPart, InlineDataPart]


@dataclass(frozen=True, slots=True)
class Content:
    role: str
    parts: tuple[Part, ...]

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [part.to_payload() for part in self.parts]}


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    contents: tuple[Content, ...]
    system_instruction: str | None = None
    response_schema: dict[str, Any] | None = None
    response_mime_type: str | None = None

    def __post_init__(self) -> None:
        if not self.contents:
            raise GatewayError(
                status_code=400,
                message="contents must contain at least one message turn.",
                code="empty_contents",
                param="contents",
            )

    @classmethod
    def from_text(cls, text: str, **kwargs: Any) -> "GenerationRequest":
        return cls(contents=(Content(role="user", parts=(TextPart(text),)),), **kwargs)


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    temperature: float = 0.7
    max_output_tokens: int = 2048
    top_p: float = 0.95
    top_k: int = 64

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topP": self.top_p,
            "topK": self.top_k,
        }


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    model_queue_override: tuple[ModelIdentifier, ...] = ()
    response_mime_type: str | None = None


@dataclass(frozen=True, slots=True)
class ErrorClassification:
    kind: ErrorKind
    retryable: bool
    advance_to_next_model: bool
    suggested_wait_ms: int | None = None


class PredictionStatus(str, Enum):
    STARTING = "starting"
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        if self in (PredictionStatus.STARTING, PredictionStatus.QUEUED):
            return 0
        if self is PredictionStatus.PROCESSING:
            return 1
        return 2


_TERMINAL_STATUSES = frozenset(
    {PredictionStatus.SUCCEEDED, PredictionStatus.FAILED, PredictionStatus.CANCELED}
)


@dataclass(frozen=True, slots=True)
class PredictionJob:
    id: str
    status: PredictionStatus
    output: Any = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "PredictionJob":
        job_id = record.get("id")
        status_value = record.get("status")
        if not isinstance(job_id, str) or not job_id:
            raise GatewayError(
                status_code=502,
                message="Prediction record is missing an id.",
                code="invalid_prediction",
                kind=ErrorKind.SERVER,
            )
        try:
            status = PredictionStatus(status_value)
        except ValueError as exc:
            raise GatewayError(
                status_code=502,
                message=f"Prediction {job_id} has an unknown status {status_value!r}.",
                code="invalid_prediction",
                kind=ErrorKind.SERVER,
            ) from exc

        error = record.get("error")
        return cls(
            id=job_id,
            status=status,
            output=record.get("output"),
            error=str(error) if error else None,
            raw=record,
        )
