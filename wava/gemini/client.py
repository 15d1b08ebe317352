from __future__ import annotations

from typing import Any

import httpx

from wava.core.config import get_settings
from wava.core.types import GenerationConfig, GenerationRequest, ModelIdentifier


class GeminiAPIError(Exception):
    """Any failed call to the Gemini REST API.

    ``status_code`` is None for transport failures (no HTTP response).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status


class GeminiClient:
    """Thin async client for ``generateContent``, bound to one credential."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_s: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout_s if timeout_s is not None else settings.GEMINI_TIMEOUT_S
        )

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def generate_content(
        self,
        model: ModelIdentifier,
        request: GenerationRequest,
        config: GenerationConfig,
        response_mime_type: str | None = None,
    ) -> str:
        url = f"{self.base_url}/v1beta/models/{model}:generateContent"
        payload = build_generate_payload(request, config, response_mime_type)
        data = await self._send("POST", url, json=payload)
        return _extract_text(data)

    async def list_models(self) -> list[dict[str, Any]]:
        data = await self._send("GET", f"{self.base_url}/v1beta/models")
        models = data.get("models") or []
        return [
            {
                "name": m.get("name"),
                "displayName": m.get("displayName"),
                "supportedGenerationMethods": m.get("supportedGenerationMethods") or [],
            }
            for m in models
            if isinstance(m, dict)
        ]

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        headers = {"x-goog-api-key": self.api_key}
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise GeminiAPIError(f"timeout while calling Gemini: {exc}") from exc
        except httpx.TransportError as exc:
            raise GeminiAPIError(f"network error while calling Gemini: {exc}") from exc

        if response.is_error:
            raise _error_from_response(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise GeminiAPIError(
                f"Gemini returned a non-JSON body (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise GeminiAPIError("Gemini returned an unexpected response shape")
        return data


def build_generate_payload(
    request: GenerationRequest,
    config: GenerationConfig,
    response_mime_type: str | None = None,
) -> dict[str, Any]:
    generation_config = config.to_payload()

    mime_type = response_mime_type or request.response_mime_type
    if request.response_schema is not None:
        generation_config["responseSchema"] = request.response_schema
        generation_config["responseMimeType"] = mime_type or "application/json"
    elif mime_type:
        generation_config["responseMimeType"] = mime_type

    payload: dict[str, Any] = {
        "contents": [content.to_payload() for content in request.contents],
        "generationConfig": generation_config,
    }
    if request.system_instruction:
        payload["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}
    return payload


def _error_from_response(response: httpx.Response) -> GeminiAPIError:
    status_code = response.status_code
    message = response.reason_phrase or "error"
    status: str | None = None
    retry_delay: str | None = None

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = str(error.get("message") or message)
        status = error.get("status")
        for detail in error.get("details") or []:
            if isinstance(detail, dict) and detail.get("retryDelay"):
                retry_delay = str(detail["retryDelay"])
    elif response.text:
        message = response.text[:500]

    text = f"[{status_code} {status or response.reason_phrase}] {message}"
    if retry_delay:
        text += f" (retry after {retry_delay})"
    return GeminiAPIError(text, status_code=status_code, status=status)


def _extract_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        raise GeminiAPIError(
            f"Gemini returned no candidates (blockReason={reason or 'UNKNOWN'})"
        )

    content = (candidates[0] or {}).get("content") or {}
    out_parts = content.get("parts") or []
    texts = [p.get("text", "") for p in out_parts if isinstance(p, dict) and "text" in p]
    if not texts:
        reason = (candidates[0] or {}).get("finishReason")
        raise GeminiAPIError(
            f"Gemini returned a candidate without text (finishReason={reason or 'UNKNOWN'})"
        )
    return "".join(texts)
