"""Server-side calls to the Replicate predictions API (used by the proxy)."""

from __future__ import annotations

from typing import Any

import httpx

from wava.core.config import get_settings


async def create_prediction(token: str, version: str, input_data: Any) -> tuple[int, Any]:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.REPLICATE_TIMEOUT_S) as client:
        response = await client.post(
            settings.REPLICATE_API_URL,
            headers=_headers(token),
            json={"version": version, "input": input_data},
        )
    return response.status_code, _body(response)


async def get_prediction(token: str, prediction_id: str) -> tuple[int, Any]:
    settings = get_settings()
    url = f"{settings.REPLICATE_API_URL.rstrip('/')}/{prediction_id}"
    async with httpx.AsyncClient(timeout=settings.REPLICATE_TIMEOUT_S) as client:
        response = await client.get(url, headers=_headers(token))
    return response.status_code, _body(response)


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"detail": response.text or None}
