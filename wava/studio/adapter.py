from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator

from wava.core.config import get_settings
from wava.core.types import (
    Content,
    GenerationOptions,
    GenerationRequest,
    InlineDataPart,
    Part,
    TextPart,
)
from wava.gemini.client import GeminiAPIError, GeminiClient
from wava.gemini.fallback import FallbackGenerator
from wava.workflows.detail_page import DetailPageInput, plan_detail_page, suggest_features
from wava.workflows.thumbnail import ThumbnailInput, plan_thumbnail

from .errors import StudioAPIError, map_generation_error
from .schemas import (
    ContentPart,
    DetailPagePlanRequest,
    FeatureSuggestionRequest,
    GenerateRequest,
    InlineData,
    ThumbnailPlanRequest,
)


@asynccontextmanager
async def open_generator(api_key: str) -> AsyncIterator[FallbackGenerator]:
    async with GeminiClient(api_key) as client:
        yield FallbackGenerator(client)


def model_card(model_id: str, priority: int) -> dict[str, Any]:
    return {
        "id": model_id,
        "object": "model",
        "priority": priority,
        "owned_by": "google",
    }


def list_model_queue() -> list[dict[str, Any]]:
    return [
        model_card(model_id, priority)
        for priority, model_id in enumerate(get_settings().GEMINI_MODEL_QUEUE)
    ]


async def list_live_models(api_key: str) -> list[dict[str, Any]]:
    try:
        async with GeminiClient(api_key) as client:
            return await client.list_models()
    except GeminiAPIError as exc:
        raise StudioAPIError(
            status_code=exc.status_code or 502,
            message=exc.message,
            error_type="upstream_error",
            code="list_models_failed",
        ) from exc


def to_generation_request(payload: GenerateRequest) -> GenerationRequest:
    contents = tuple(
        Content(role=turn.role, parts=tuple(_to_part(part) for part in turn.parts))
        for turn in payload.contents
    )
    return GenerationRequest(
        contents=contents,
        system_instruction=payload.system_instruction,
        response_schema=payload.response_schema,
        response_mime_type=payload.response_mime_type,
    )


async def create_generation(payload: GenerateRequest, api_key: str) -> dict[str, Any]:
    request = to_generation_request(payload)
    options = GenerationOptions(model_queue_override=tuple(payload.model_queue or ()))

    try:
        async with open_generator(api_key) as generator:
            text = await generator.generate(request, options)
    except Exception as exc:
        raise map_generation_error(exc) from exc

    return {"text": text}


async def create_thumbnail_plan(payload: ThumbnailPlanRequest, api_key: str) -> dict[str, Any]:
    data = ThumbnailInput(
        main_copy=payload.main_copy,
        image_style=payload.image_style,
        width=payload.width,
        height=payload.height,
        aspect_ratio=payload.aspect_ratio,
        additional_request=payload.additional_request,
        image_part=_to_inline_part(payload.image) if payload.image else None,
    )

    try:
        async with open_generator(api_key) as generator:
            plan = await plan_thumbnail(generator, data)
    except Exception as exc:
        raise map_generation_error(exc) from exc

    return {"prompt": plan.prompt, "reasoning": plan.reasoning}


async def create_detail_page_plan(payload: DetailPagePlanRequest, api_key: str) -> dict[str, Any]:
    data = DetailPageInput(
        product_name=payload.product_name,
        category=payload.category,
        features=payload.features,
        target_audience=list(payload.target_audience),
        page_length=payload.page_length,
        price=payload.price,
        promotion_info=payload.promotion_info,
        image_part=_to_inline_part(payload.image) if payload.image else None,
    )

    try:
        async with open_generator(api_key) as generator:
            plan = await plan_detail_page(generator, data)
    except Exception as exc:
        raise map_generation_error(exc) from exc

    return {
        "sections": [asdict(section) for section in plan.sections],
        "total_sections": plan.total_sections,
        "timestamp": plan.timestamp.isoformat(),
    }


async def create_feature_suggestion(payload: FeatureSuggestionRequest, api_key: str) -> dict[str, Any]:
    try:
        async with open_generator(api_key) as generator:
            features = await suggest_features(generator, payload.product_name)
    except Exception as exc:
        raise map_generation_error(exc) from exc

    return {"features": features}


def _to_part(part: ContentPart) -> Part:
    if part.inline_data is not None:
        return _to_inline_part(part.inline_data)
    return TextPart(part.text or "")


def _to_inline_part(data: InlineData) -> InlineDataPart:
    return InlineDataPart(mime_type=data.mime_type, data=data.data)
