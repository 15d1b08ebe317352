"""Thumbnail workflow: plan a visual prompt with Gemini, then render it on Replicate."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from wava.core.credentials import require_credential
from wava.core.logging import get_logger
from wava.core.types import (
    JSON_MIME_TYPE,
    Content,
    GenerationRequest,
    InlineDataPart,
    Part,
    TextPart,
)
from wava.gemini.fallback import FallbackGenerator
from wava.gemini.recovery import parse_prompt_response
from wava.replicate.client import PredictionJobClient
from wava.replicate.presets import generate_image_standard, generate_image_with_controlnet

logger = get_logger("workflows.thumbnail")

ImageStyle = Literal["clean", "lifestyle", "creative"]

MAX_RENDER_PROMPT_CHARS = 2000

PROMPT_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "rationale": {"type": "string"},
        "prompt": {"type": "string"},
    },
    "required": ["rationale", "prompt"],
}

_PLANNER_INSTRUCTION = """
Role: World-class eCommerce AI Planner.

Goal:
1. Analyze product info/image.
2. Write 'rationale' (Korean) explaining the concept to the user.
3. Write 'prompt' (English) for Stable Diffusion/ControlNet.

Constraint:
- No text/watermarks in image.
- Style: '{style}'
- IMPORTANT: keep 'prompt' to 3-4 sentences and under 400 characters.
- Do not use decorative technical terms (8K, UHD, ultra-detailed, lens, camera settings, lighting values).
- Focus on the main subject, composition, and lighting atmosphere only.
"""


@dataclass
class ThumbnailInput:
    main_copy: str
    image_style: ImageStyle
    width: int
    height: int
    aspect_ratio: str = "1:1"
    additional_request: str | None = None
    # prepared (resized/compressed) upload for the planner
    image_part: InlineDataPart | None = None
    # data URI of the original upload for ControlNet
    image_uri: str | None = None


@dataclass
class ThumbnailPlan:
    prompt: str
    reasoning: str


@dataclass
class ThumbnailResult:
    image_url: str
    prompt: str
    reasoning: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_planning_request(data: ThumbnailInput) -> GenerationRequest:
    if data.image_part is not None:
        user_prompt = (
            "[Request]\nAnalyze the attached product image and generate JSON output.\n"
            f"Target Resolution: {data.width}x{data.height} ({data.aspect_ratio}). "
            "Ensure the composition fits this ratio."
        )
    else:
        user_prompt = (
            f"[Request]\nProduct: {data.main_copy}\nStyle: {data.image_style}\n"
            f"Target Resolution: {data.width}x{data.height} ({data.aspect_ratio})\n"
            f"Extra: {data.additional_request or 'None'}"
        )

    parts: list[Part] = [TextPart(user_prompt)]
    if data.image_part is not None:
        parts.append(data.image_part)

    return GenerationRequest(
        contents=(Content(role="user", parts=tuple(parts)),),
        system_instruction=_PLANNER_INSTRUCTION.format(style=data.image_style),
        response_schema=PROMPT_RESPONSE_SCHEMA,
        response_mime_type=JSON_MIME_TYPE,
    )


async def plan_thumbnail(generator: FallbackGenerator, data: ThumbnailInput) -> ThumbnailPlan:
    response_text = await generator.generate(build_planning_request(data))
    parsed = parse_prompt_response(response_text)
    return ThumbnailPlan(
        prompt=parsed["prompt"],
        reasoning=parsed.get("rationale") or "No planning rationale provided.",
    )


def clean_render_prompt(prompt: str) -> str:
    return re.sub(r"[\r\n]+", " ", prompt).strip()[:MAX_RENDER_PROMPT_CHARS]


async def generate_thumbnail(
    generator: FallbackGenerator,
    job_client: PredictionJobClient,
    data: ThumbnailInput,
    replicate_key: str | None,
) -> ThumbnailResult:
    # the Replicate token only gates the flow; the proxy authenticates upstream
    require_credential("replicate", replicate_key)

    logger.info("Step 1: planning thumbnail prompt")
    plan = await plan_thumbnail(generator, data)
    logger.info("Prompt generated: %s", plan.prompt)

    render_prompt = clean_render_prompt(plan.prompt)
    logger.info("Step 2: rendering image (%dx%d)", data.width, data.height)
    if data.image_uri:
        image_url = await generate_image_with_controlnet(
            job_client, data.image_uri, render_prompt, data.width, data.height
        )
    else:
        image_url = await generate_image_standard(job_client, render_prompt, data.width, data.height)

    return ThumbnailResult(image_url=image_url, prompt=plan.prompt, reasoning=plan.reasoning)
