from __future__ import annotations

from fastapi import APIRouter, Depends

from wava.dependencies import get_gemini_api_key
from wava.studio.adapter import create_generation
from wava.studio.schemas import GenerateRequest

router = APIRouter(prefix="/v1", tags=["generation"])


@router.post("/generate")
async def generate(payload: GenerateRequest, api_key: str = Depends(get_gemini_api_key)) -> dict:
    return await create_generation(payload, api_key)
