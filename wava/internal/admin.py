from __future__ import annotations

from fastapi import APIRouter

from wava.core.config import get_settings
from wava.core.credentials import resolve_api_key

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/healthz")
async def healthz() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "gemini_configured": resolve_api_key(settings.GEMINI_API_KEY) is not None,
        "replicate_configured": resolve_api_key(settings.REPLICATE_API_TOKEN) is not None,
        "model_queue": list(settings.GEMINI_MODEL_QUEUE),
    }
