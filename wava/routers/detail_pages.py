from __future__ import annotations

from fastapi import APIRouter, Depends

from wava.dependencies import get_gemini_api_key
from wava.studio.adapter import create_detail_page_plan, create_feature_suggestion
from wava.studio.schemas import DetailPagePlanRequest, FeatureSuggestionRequest

router = APIRouter(prefix="/v1/detail-pages", tags=["detail-pages"])


@router.post("/plan")
async def plan(payload: DetailPagePlanRequest, api_key: str = Depends(get_gemini_api_key)) -> dict:
    return await create_detail_page_plan(payload, api_key)


@router.post("/features")
async def features(
    payload: FeatureSuggestionRequest,
    api_key: str = Depends(get_gemini_api_key),
) -> dict:
    return await create_feature_suggestion(payload, api_key)
