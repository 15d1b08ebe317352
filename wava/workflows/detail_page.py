"""Detail page workflow: section planning, USP suggestions and section renders."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Sequence

from wava.core.credentials import require_credential
from wava.core.errors import ErrorKind, FeatureSuggestionError, GatewayError, ResponseParseError
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
from wava.gemini.recovery import recover_json_object
from wava.replicate.client import PredictionJobClient
from wava.replicate.presets import generate_image_standard

from .thumbnail import MAX_RENDER_PROMPT_CHARS

logger = get_logger("workflows.detail_page")

PageLength = Literal["auto", "short", "standard", "long"]

SECTION_COUNTS: dict[str, int] = {
    "auto": 7,
    "short": 5,
    "standard": 7,
    "long": 9,
}

_PLANNER_INSTRUCTION = """
You are a Korean eCommerce detail page planner.

Requirements:
1. Constraint: every section 'title' and 'keyMessage' MUST be written in Korean.
2. Sections: exactly {count} sections (Hook -> Solution -> Core value -> Features -> Trust -> Comparison -> CTA).
3. Format: each section is rendered as a vertical 9:16 image.
4. 'visualPrompt' rules:
   - Describe the original product in detail in English (color, material, shape, logo) so it is drawn without distortion.
   - Include keywords such as "High quality ecommerce product photography" and "Professional lighting".
   - If a human model is needed, state 'Korean model' explicitly.
   - No text inside the image.

Output format (JSON only):
{{
  "sections": [
    {{
      "title": "section title (Korean)",
      "keyMessage": "key message (Korean, max 20 characters)",
      "visualPrompt": "detailed English image prompt"
    }}
  ]
}}
"""

_FEATURES_INSTRUCTION = """
You are a veteran marketer.
Analyze the product name and summarize 3-5 unique selling points consumers would find attractive, as one natural paragraph.
Write in Korean, concretely and persuasively.
"""


@dataclass
class DetailPageInput:
    product_name: str
    category: str
    features: str
    target_audience: list[str]
    page_length: PageLength = "auto"
    price: int | None = None
    promotion_info: str | None = None
    image_part: InlineDataPart | None = None


@dataclass
class DetailPageSection:
    id: str
    title: str
    key_message: str
    visual_prompt: str
    order: int
    image_url: str | None = None


@dataclass
class DetailPagePlan:
    sections: list[DetailPageSection]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_sections(self) -> int:
        return len(self.sections)


def build_plan_request(data: DetailPageInput) -> GenerationRequest:
    price = f"{data.price:,} KRW" if data.price is not None else "N/A"
    image_hint = (
        "Analyze the attached product image and reflect it in the plan."
        if data.image_part is not None
        else "Plan from the product information."
    )
    user_prompt = (
        "Product information:\n"
        f"- Name: {data.product_name}\n"
        f"- Category: {data.category}\n"
        f"- Price: {price}\n"
        f"- Promotion: {data.promotion_info or 'None'}\n"
        f"- Features: {data.features}\n"
        f"- Target audience: {', '.join(data.target_audience)}\n\n"
        f"{image_hint}\n"
        "Plan the detail page structure from the product information above. Output JSON only."
    )

    parts: list[Part] = [TextPart(user_prompt)]
    if data.image_part is not None:
        parts.append(data.image_part)

    count = SECTION_COUNTS[data.page_length]
    return GenerationRequest(
        contents=(Content(role="user", parts=tuple(parts)),),
        system_instruction=_PLANNER_INSTRUCTION.format(count=count),
        response_mime_type=JSON_MIME_TYPE,
    )


async def plan_detail_page(generator: FallbackGenerator, data: DetailPageInput) -> DetailPagePlan:
    text = await generator.generate(build_plan_request(data))
    parsed = recover_json_object(text, ("sections",))

    raw_sections = parsed["sections"]
    if not isinstance(raw_sections, list):
        raise ResponseParseError(
            status_code=502,
            message="AI response (JSON) has no sections array.",
            code="parse_failure",
            kind=ErrorKind.PARSE_FAILURE,
            missing_fields=("sections",),
        )

    sections = [
        _section_from_payload(payload, index)
        for index, payload in enumerate(raw_sections, start=1)
        if isinstance(payload, dict)
    ]
    logger.info("Planned %d detail page sections for %s", len(sections), data.product_name)
    return DetailPagePlan(sections=sections)


async def suggest_features(generator: FallbackGenerator, product_name: str) -> str:
    request = GenerationRequest(
        contents=(Content(role="user", parts=(TextPart(f'Product name: "{product_name}"'),)),),
        system_instruction=_FEATURES_INSTRUCTION,
    )
    try:
        text = await generator.generate(request)
    except GatewayError as exc:
        logger.error("Feature generation failed: %s", exc)
        raise FeatureSuggestionError(
            status_code=exc.status_code,
            message="Product feature suggestion failed.",
            code="feature_suggestion_failed",
            kind=exc.kind,
            product_name=product_name,
        ) from exc
    return (text or "").strip()


def build_section_prompt(section: DetailPageSection, product_name: str) -> str:
    full_prompt = (
        f"Product photography of {product_name}. {section.visual_prompt}. "
        "Style: High quality ecommerce product photography, Professional studio lighting, 8k resolution. "
        "Subject: Korean model if person is shown. "
        "Negative: Text, Typography, Logo, Watermark, Distorted, Blurry, Low quality."
    )
    return re.sub(r"\s+", " ", full_prompt).strip()[:MAX_RENDER_PROMPT_CHARS]


async def generate_section_images(
    job_client: PredictionJobClient,
    sections: Sequence[DetailPageSection],
    product_name: str,
    replicate_key: str | None,
    on_progress: Callable[[int, int, DetailPageSection], Any] | None = None,
) -> list[DetailPageSection]:
    require_credential("replicate", replicate_key)

    results: list[DetailPageSection] = []
    for index, section in enumerate(sections, start=1):
        if on_progress is not None:
            on_progress(index, len(sections), section)
        logger.info("Rendering section %s (%d/%d)", section.id, index, len(sections))
        image_url = await generate_image_standard(job_client, build_section_prompt(section, product_name))
        results.append(replace(section, image_url=image_url))
    return results


def _section_from_payload(payload: dict[str, Any], order: int) -> DetailPageSection:
    return DetailPageSection(
        id=f"section-{order}",
        title=str(payload.get("title") or ""),
        key_message=str(payload.get("keyMessage") or ""),
        visual_prompt=str(payload.get("visualPrompt") or ""),
        order=order,
    )
