from __future__ import annotations

from .errors import ErrorKind, MissingCredentialError

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"

_SERVICE_HINTS = {
    "gemini": "Register a Gemini API key to use AI generation.",
    "replicate": "Register a Replicate API token to generate images.",
}


def resolve_api_key(*candidates: str | None) -> str | None:
    """First candidate that is set and is not the sample placeholder."""

    for candidate in candidates:
        if candidate and candidate.strip() and candidate.strip() != PLACEHOLDER_API_KEY:
            return candidate.strip()
    return None


def require_credential(service: str, *candidates: str | None) -> str:
    credential = resolve_api_key(*candidates)
    if credential is None:
        raise MissingCredentialError(
            status_code=401,
            message=_SERVICE_HINTS.get(service, f"Register a {service} credential."),
            code="missing_credential",
            kind=ErrorKind.AUTH,
            service=service,
        )
    return credential
