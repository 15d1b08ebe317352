"""Smart-fallback text generation across a priority queue of Gemini models."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Protocol

from wava.core.config import get_settings
from wava.core.errors import ErrorKind, GenerationAbortedError, ModelQueueExhaustedError
from wava.core.logging import get_logger
from wava.core.types import (
    Content,
    GenerationConfig,
    GenerationOptions,
    GenerationRequest,
    ModelIdentifier,
)

from .classification import backoff_ms, classify_error
from .client import GeminiAPIError, GeminiClient

logger = get_logger("gemini.fallback")

Sleep = Callable[[float], Awaitable[Any]]

_ABORT_STATUS = {
    ErrorKind.AUTH: 401,
    ErrorKind.MALFORMED_REQUEST: 400,
}

_EXHAUSTED_STATUS = {
    ErrorKind.QUOTA: 429,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SERVER: 503,
    ErrorKind.NETWORK: 503,
}


class TextBackend(Protocol):
    async def generate_content(
        self,
        model: ModelIdentifier,
        request: GenerationRequest,
        config: GenerationConfig,
        response_mime_type: str | None = None,
    ) -> str: ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries_per_model: int = 2
    backoff_base_ms: int = 600
    backoff_cap_ms: int = 8_000
    backoff_jitter_ms: int = 250


def default_model_queue() -> tuple[ModelIdentifier, ...]:
    return tuple(get_settings().GEMINI_MODEL_QUEUE)


def default_generation_config() -> GenerationConfig:
    settings = get_settings()
    return GenerationConfig(
        temperature=settings.GEMINI_TEMPERATURE,
        max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
        top_p=settings.GEMINI_TOP_P,
        top_k=settings.GEMINI_TOP_K,
    )


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries_per_model=get_settings().GEMINI_MAX_RETRIES_PER_MODEL)


class FallbackGenerator:
    """Tries each model in priority order; first success wins.

    Per model, retryable failures (QUOTA, SERVER, NETWORK) are retried up to
    ``policy.max_retries_per_model`` times before moving on. AUTH and
    MALFORMED_REQUEST abort the whole call. Attempts never overlap.
    """

    def __init__(
        self,
        backend: TextBackend,
        *,
        model_queue: Iterable[ModelIdentifier] | None = None,
        config: GenerationConfig | None = None,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.model_queue = tuple(model_queue) if model_queue is not None else default_model_queue()
        self.config = config or default_generation_config()
        self.policy = policy or default_retry_policy()
        self._sleep = sleep
        self._rng = rng

    async def generate(
        self,
        request: GenerationRequest,
        options: GenerationOptions | None = None,
    ) -> str:
        options = options or GenerationOptions()
        queue = options.model_queue_override or self.model_queue
        max_retries = self.policy.max_retries_per_model

        last_error: BaseException | None = None
        last_kind = ErrorKind.UNKNOWN
        attempted: list[ModelIdentifier] = []

        for model in queue:
            logger.info("Attempting model: %s", model)
            attempted.append(model)

            for attempt in range(max_retries + 1):
                try:
                    return await self.backend.generate_content(
                        model,
                        request,
                        self.config,
                        response_mime_type=options.response_mime_type,
                    )
                except GeminiAPIError as exc:
                    analysis = classify_error(exc)
                    last_error = exc
                    last_kind = analysis.kind

                    fatal = not analysis.retryable and not analysis.advance_to_next_model
                    if fatal or analysis.kind is ErrorKind.AUTH:
                        logger.error("Model %s failed: [%s] %s", model, analysis.kind.value, exc)
                        raise _aborted(analysis.kind, exc, model) from exc

                    can_retry = analysis.retryable and attempt < max_retries
                    if not can_retry:
                        logger.warning(
                            "Model %s failed: [%s] %s; switching to backup model",
                            model,
                            analysis.kind.value,
                            exc,
                        )
                        break

                    wait_ms = analysis.suggested_wait_ms
                    if wait_ms is None:
                        wait_ms = backoff_ms(
                            attempt + 1,
                            base_ms=self.policy.backoff_base_ms,
                            cap_ms=self.policy.backoff_cap_ms,
                            jitter_ms=self.policy.backoff_jitter_ms,
                            rng=self._rng,
                        )
                    logger.warning(
                        "Temporary error on %s: [%s] retrying in %dms (attempt %d/%d)",
                        model,
                        analysis.kind.value,
                        wait_ms,
                        attempt + 1,
                        max_retries,
                    )
                    await self._sleep(wait_ms / 1000)

        raise ModelQueueExhaustedError(
            status_code=_EXHAUSTED_STATUS.get(last_kind, 502),
            message=(
                f"No model responded ({', '.join(attempted) or 'empty queue'}); "
                f"last error: {last_error}"
            ),
            code="models_exhausted",
            kind=last_kind,
            last_error=last_error,
            attempted_models=tuple(attempted),
        )


async def generate_with_fallback(
    api_key: str,
    contents: Iterable[Content],
    system_instruction: str | None = None,
    response_schema: dict[str, Any] | None = None,
    options: GenerationOptions | None = None,
    *,
    client: GeminiClient | None = None,
) -> str:
    """One-shot helper: build a client for ``api_key`` and run the fallback queue."""

    request = GenerationRequest(
        contents=tuple(contents),
        system_instruction=system_instruction,
        response_schema=response_schema,
    )
    if client is not None:
        return await FallbackGenerator(client).generate(request, options)

    async with GeminiClient(api_key) as owned_client:
        return await FallbackGenerator(owned_client).generate(request, options)


def _aborted(kind: ErrorKind, exc: GeminiAPIError, model: ModelIdentifier) -> GenerationAbortedError:
    return GenerationAbortedError(
        status_code=_ABORT_STATUS.get(kind, 400),
        message=f"[{kind.value}] {exc.message}",
        code="auth_failed" if kind is ErrorKind.AUTH else "malformed_request",
        kind=kind,
        model=model,
    )
