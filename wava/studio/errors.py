from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wava.core.errors import ErrorKind, GatewayError, describe_error


@dataclass
class StudioAPIError(Exception):
    """HTTP-facing error: a short user message plus machine-readable type/code."""

    status_code: int
    message: str
    error_type: str = "unknown"
    code: str | None = None
    param: str | None = None

    def to_error(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "type": self.error_type,
            "param": self.param,
            "code": self.code,
        }


def map_generation_error(exc: Exception) -> StudioAPIError:
    if isinstance(exc, StudioAPIError):
        return exc

    if isinstance(exc, GatewayError):
        return StudioAPIError(
            status_code=exc.status_code,
            message=describe_error(exc),
            error_type=exc.kind.value.lower(),
            code=exc.code,
            param=exc.param,
        )

    return StudioAPIError(
        status_code=500,
        message=describe_error(exc),
        error_type=ErrorKind.UNKNOWN.value.lower(),
        code="internal_error",
    )
