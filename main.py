import asyncio
import sys

from wava.core.config import get_settings
from wava.core.credentials import require_credential
from wava.core.errors import GatewayError, describe_error
from wava.core.logging import setup_logging
from wava.gemini.client import GeminiClient
from wava.gemini.fallback import FallbackGenerator
from wava.replicate.client import PredictionJobClient
from wava.workflows.thumbnail import ThumbnailInput, generate_thumbnail


async def main(product: str):
    setup_logging()
    settings = get_settings()

    try:
        api_key = require_credential("gemini", settings.GEMINI_API_KEY)
    except GatewayError as exc:
        print(describe_error(exc))
        return

    data = ThumbnailInput(main_copy=product, image_style="clean", width=1024, height=1024)

    # The prediction proxy served by wava.main:app must be running for the render step
    async with GeminiClient(api_key) as gemini, PredictionJobClient() as jobs:
        try:
            result = await generate_thumbnail(
                FallbackGenerator(gemini), jobs, data, settings.REPLICATE_API_TOKEN
            )
        except GatewayError as exc:
            print(f"Thumbnail generation failed: {describe_error(exc)}")
            return

    print(f"Reasoning: {result.reasoning}")
    print(f"Prompt: {result.prompt}")
    print(f"Image: {result.image_url}")


if __name__ == "__main__":
    asyncio.run(main(" ".join(sys.argv[1:]) or "Handmade ceramic coffee mug"))
