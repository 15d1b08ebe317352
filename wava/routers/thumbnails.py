from __future__ import annotations

from fastapi import APIRouter, Depends

from wava.dependencies import get_gemini_api_key
from wava.studio.adapter import create_thumbnail_plan
from wava.studio.schemas import ThumbnailPlanRequest

router = APIRouter(prefix="/v1/thumbnails", tags=["thumbnails"])


@router.post("/plan")
async def plan(payload: ThumbnailPlanRequest, api_key: str = Depends(get_gemini_api_key)) -> dict:
    return await create_thumbnail_plan(payload, api_key)
