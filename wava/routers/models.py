from __future__ import annotations

from fastapi import APIRouter, Header

from wava.core.config import get_settings
from wava.core.credentials import require_credential
from wava.studio.adapter import list_live_models, list_model_queue

router = APIRouter(prefix="/v1", tags=["generation"])


@router.get("/models")
async def list_models(
    live: bool = False,
    x_goog_api_key: str | None = Header(default=None, alias="x-goog-api-key"),
) -> dict:
    payload: dict = {
        "object": "list",
        "data": list_model_queue(),
    }
    if live:
        api_key = require_credential("gemini", x_goog_api_key, get_settings().GEMINI_API_KEY)
        payload["available"] = await list_live_models(api_key)
    return payload
