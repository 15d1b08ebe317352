"""Submit a prediction through the same-origin proxy and poll it to completion."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import httpx

from wava.core.config import get_settings
from wava.core.errors import (
    ErrorKind,
    GatewayError,
    PredictionFailedError,
    PredictionRequestError,
    PredictionTimeoutError,
)
from wava.core.logging import get_logger
from wava.core.types import PredictionJob, PredictionStatus

logger = get_logger("replicate.client")

Sleep = Callable[[float], Awaitable[Any]]


def first_output(output: Any) -> Any:
    if isinstance(output, list):
        return output[0] if output else None
    return output


class PredictionJobClient:
    def __init__(
        self,
        endpoint: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        poll_interval_s: float | None = None,
        max_attempts: int | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.endpoint = endpoint or settings.REPLICATE_PROXY_URL
        self.poll_interval_s = (
            poll_interval_s if poll_interval_s is not None else settings.REPLICATE_POLL_INTERVAL_S
        )
        self.max_attempts = max_attempts if max_attempts is not None else settings.REPLICATE_MAX_POLL_ATTEMPTS
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.REPLICATE_TIMEOUT_S)
        self._sleep = sleep

    async def __aenter__(self) -> "PredictionJobClient":
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def submit_and_await(self, version: str, input_data: dict[str, Any]) -> Any:
        job = await self.submit(version, input_data)
        logger.info("Prediction %s submitted (status=%s)", job.id, job.status.value)

        attempts = 0
        while not job.is_terminal:
            attempts += 1
            if attempts > self.max_attempts:
                logger.error("Prediction %s timed out after %d polls", job.id, self.max_attempts)
                raise PredictionTimeoutError(
                    status_code=504,
                    message=f"Image generation timed out (prediction {job.id}).",
                    code="prediction_timeout",
                    kind=ErrorKind.TIMEOUT,
                    prediction_id=job.id,
                    attempts=self.max_attempts,
                )

            await self._sleep(self.poll_interval_s)
            job = self._advance(job, await self.fetch(job.id))

        if job.status is not PredictionStatus.SUCCEEDED:
            reason = job.error or job.status.value
            logger.error("Prediction %s ended as %s: %s", job.id, job.status.value, reason)
            raise PredictionFailedError(
                status_code=502,
                message=f"Image generation failed: {reason}",
                code=f"prediction_{job.status.value}",
                kind=ErrorKind.JOB_FAILED,
                prediction_id=job.id,
                reason=job.error,
            )

        logger.info("Prediction %s succeeded after %d polls", job.id, attempts)
        return job.output

    async def submit(self, version: str, input_data: dict[str, Any]) -> PredictionJob:
        response = await self._request("POST", self.endpoint, json={"version": version, "input": input_data})
        if response.is_error:
            detail = _error_detail(response)
            raise PredictionRequestError(
                status_code=502,
                message=detail or f"Prediction request failed ({response.status_code})",
                code="prediction_submit_failed",
                kind=ErrorKind.SERVER,
            )
        return PredictionJob.from_record(_json_record(response))

    async def fetch(self, prediction_id: str) -> PredictionJob:
        response = await self._request("GET", self.endpoint, params={"id": prediction_id})
        if response.is_error:
            raise PredictionRequestError(
                status_code=502,
                message=f"Status check failed ({response.status_code})",
                code="prediction_status_failed",
                kind=ErrorKind.SERVER,
            )
        return PredictionJob.from_record(_json_record(response))

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise PredictionRequestError(
                status_code=503,
                message=f"network error while calling the prediction proxy: {exc}",
                code="prediction_network_error",
                kind=ErrorKind.NETWORK,
            ) from exc

    @staticmethod
    def _advance(current: PredictionJob, latest: PredictionJob) -> PredictionJob:
        if latest.status.rank < current.status.rank:
            logger.warning(
                "Prediction %s reported %s after %s",
                current.id,
                latest.status.value,
                current.status.value,
            )
        return latest


def _json_record(response: httpx.Response) -> dict[str, Any]:
    try:
        record = response.json()
    except ValueError as exc:
        raise GatewayError(
            status_code=502,
            message="Prediction proxy returned a non-JSON body.",
            code="invalid_prediction",
            kind=ErrorKind.SERVER,
        ) from exc
    if not isinstance(record, dict):
        raise GatewayError(
            status_code=502,
            message="Prediction proxy returned an unexpected response shape.",
            code="invalid_prediction",
            kind=ErrorKind.SERVER,
        )
    return record


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None
