from __future__ import annotations

from typing import Any

from wava.core.config import SDXL_SCHEDULERS, get_settings
from wava.core.errors import ErrorKind, GatewayError, PredictionFailedError

from .client import PredictionJobClient, first_output

CONTROLNET_CANNY_VERSION = "aff48af9c68d162388d230a2ab003f68d2638d88307bdaf1c2f1ac95079c9613"  # jagilley/controlnet-canny
SDXL_VERSION = "39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b"  # stability-ai/sdxl

CONTROLNET_NEGATIVE_PROMPT = (
    "longbody, lowres, bad anatomy, bad hands, missing fingers, extra digit, "
    "fewer digits, cropped, worst quality, low quality"
)
SDXL_NEGATIVE_PROMPT = "text, watermark, low quality, distorted, blurry, bad anatomy"


def controlnet_input(
    image_uri: str,
    prompt: str,
    width: int | None = None,
    height: int | None = None,
) -> dict[str, Any]:
    resolution = max(width, height) if width and height else 512
    return {
        "image": image_uri,
        "prompt": prompt,
        "num_samples": 1,
        "image_resolution": resolution,
        "low_threshold": 100,
        "high_threshold": 200,
        "ddim_steps": 20,
        "scale": 9.0,
        "n_prompt": CONTROLNET_NEGATIVE_PROMPT,
    }


def sdxl_input(
    prompt: str,
    width: int = 1024,
    height: int = 1024,
    scheduler: str | None = None,
) -> dict[str, Any]:
    scheduler = scheduler or get_settings().SDXL_SCHEDULER
    if scheduler not in SDXL_SCHEDULERS:
        raise GatewayError(
            status_code=400,
            message=f"Unsupported SDXL scheduler '{scheduler}'.",
            code="invalid_scheduler",
            param="scheduler",
        )
    return {
        "prompt": prompt,
        "num_outputs": 1,
        "width": width,
        "height": height,
        "refine": "expert_ensemble_refiner",
        "scheduler": scheduler,
        "lora_scale": 0.6,
        "guidance_scale": 7.5,
        "apply_watermark": False,
        "high_noise_frac": 0.8,
        "negative_prompt": SDXL_NEGATIVE_PROMPT,
    }


async def generate_image_with_controlnet(
    client: PredictionJobClient,
    image_uri: str,
    prompt: str,
    width: int | None = None,
    height: int | None = None,
) -> str:
    output = await client.submit_and_await(
        CONTROLNET_CANNY_VERSION,
        controlnet_input(image_uri, prompt, width, height),
    )
    return _require_output(output)


async def generate_image_standard(
    client: PredictionJobClient,
    prompt: str,
    width: int = 1024,
    height: int = 1024,
    scheduler: str | None = None,
) -> str:
    output = await client.submit_and_await(
        SDXL_VERSION,
        sdxl_input(prompt, width, height, scheduler),
    )
    return _require_output(output)


def _require_output(output: Any) -> str:
    image_url = first_output(output)
    if not image_url:
        raise PredictionFailedError(
            status_code=502,
            message="Image generation returned no output.",
            code="empty_output",
            kind=ErrorKind.JOB_FAILED,
            reason="no output",
        )
    return str(image_url)
