"""Layered recovery of JSON objects from unreliable model output.

Gemini is asked for JSON but does not always return it: responses arrive
wrapped in code fences, with prose around them, truncated, or with raw
newlines inside string values. Layers, first success wins:

1. strip code fences and parse the whole text;
2. parse the first balanced ``{...}`` span that mentions the marker key;
3. pull each string field out with a targeted regex.

If the required fields cannot be recovered the parse fails; the raw text
is never handed back as if it were structured data.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator, Mapping, Sequence

from wava.core.errors import ErrorKind, ResponseParseError
from wava.core.logging import get_logger

logger = get_logger("gemini.recovery")

PROMPT_MIN_LENGTH = 20

_FENCE_JSON_RE = re.compile(r"```json\s*", re.IGNORECASE)
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "/": "/"}


def strip_code_fences(text: str) -> str:
    return _FENCE_JSON_RE.sub("", text).replace("```", "").strip()


def recover_json_object(
    raw_text: str,
    required_fields: Sequence[str],
    *,
    optional_fields: Sequence[str] = (),
    marker_key: str | None = None,
    aliases: Mapping[str, Sequence[str]] | None = None,
    min_length: int = 0,
    min_length_field: str | None = None,
) -> dict[str, Any]:
    aliases = aliases or {}
    required = tuple(required_fields)
    marker = marker_key or (required[0] if required else None)

    if not raw_text or not raw_text.strip():
        raise _parse_error("the response was empty", required)

    cleaned = strip_code_fences(raw_text)

    candidate = _load_object(cleaned)
    if candidate is not None:
        candidate = _apply_aliases(candidate, aliases)
        if _has_fields(candidate, required):
            return _check_length(candidate, required, min_length, min_length_field)
        logger.warning("Parsed JSON is missing required fields %s", _missing(candidate, required))
    else:
        logger.warning("Direct JSON parse failed; searching for an embedded object")

    for chunk in _candidate_chunks(cleaned, marker):
        candidate = _load_object(chunk)
        if candidate is None:
            continue
        candidate = _apply_aliases(candidate, aliases)
        if _has_fields(candidate, required):
            return _check_length(candidate, required, min_length, min_length_field)

    logger.warning("No parseable JSON object found; falling back to field extraction")
    extracted: dict[str, Any] = {}
    for name in (*required, *optional_fields):
        for key in (name, *aliases.get(name, ())):
            value = extract_string_field(cleaned, key)
            if value is not None:
                extracted[name] = value
                break

    if not _has_fields(extracted, required):
        logger.error("Response parsing failed; raw text: %.500s", raw_text)
        raise _parse_error(
            "required fields were not found",
            required,
            missing=_missing(extracted, required),
        )

    return _check_length(extracted, required, min_length, min_length_field)


def parse_prompt_response(raw_text: str) -> dict[str, Any]:
    """Recover ``{"prompt", "rationale"}`` from a planner response."""

    return recover_json_object(
        raw_text,
        ("prompt",),
        optional_fields=("rationale",),
        aliases={"rationale": ("reasoning",)},
        min_length=PROMPT_MIN_LENGTH,
    )


def extract_string_field(text: str, field_name: str) -> str | None:
    pattern = re.compile(
        rf'"{re.escape(field_name)}"\s*:\s*"([\s\S]*?)(?<!\\)"\s*(?:,|\}}|$)'
    )
    match = pattern.search(text)
    if not match or not match.group(1):
        return None

    value = match.group(1)
    quoted = '"' + _UNESCAPED_QUOTE_RE.sub(r'\\"', value) + '"'
    try:
        decoded = json.loads(quoted, strict=False)
    except json.JSONDecodeError:
        return _unescape(value)
    return decoded if isinstance(decoded, str) else _unescape(value)


def _unescape(value: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _SIMPLE_ESCAPES.get(m.group(1), m.group(0)), value)


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _candidate_chunks(text: str, marker: str | None) -> Iterator[str]:
    needle = f'"{marker}"' if marker else None
    for span in _balanced_spans(text):
        if needle is None or needle in span:
            yield span

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        greedy = text[start : end + 1]
        if needle is None or needle in greedy:
            yield greedy


def _balanced_spans(text: str) -> Iterator[str]:
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end != -1:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _apply_aliases(obj: dict[str, Any], aliases: Mapping[str, Sequence[str]]) -> dict[str, Any]:
    result = dict(obj)
    for name, alternates in aliases.items():
        if _present(result.get(name)):
            continue
        for alternate in alternates:
            if _present(result.get(alternate)):
                result[name] = result[alternate]
                break
    return result


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _has_fields(obj: Mapping[str, Any], fields: Sequence[str]) -> bool:
    return all(_present(obj.get(name)) for name in fields)


def _missing(obj: Mapping[str, Any], fields: Sequence[str]) -> tuple[str, ...]:
    return tuple(name for name in fields if not _present(obj.get(name)))


def _check_length(
    obj: dict[str, Any],
    required: Sequence[str],
    min_length: int,
    min_length_field: str | None,
) -> dict[str, Any]:
    field_name = min_length_field or (required[0] if required else None)
    if min_length <= 0 or field_name is None:
        return obj

    value = obj.get(field_name)
    if not isinstance(value, str) or len(value) < min_length:
        raise _parse_error(
            f"'{field_name}' is shorter than {min_length} characters",
            required,
            missing=(field_name,),
        )
    return obj


def _parse_error(
    reason: str,
    required: Sequence[str],
    missing: Sequence[str] | None = None,
) -> ResponseParseError:
    return ResponseParseError(
        status_code=502,
        message=f"AI response (JSON) could not be parsed: {reason}.",
        code="parse_failure",
        kind=ErrorKind.PARSE_FAILURE,
        missing_fields=tuple(missing if missing is not None else required),
    )
