from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from wava.core.config import get_settings
from wava.core.credentials import resolve_api_key
from wava.core.logging import get_logger
from wava.dependencies import proxy_headers
from wava.replicate import upstream
from wava.studio.schemas import PredictionCreateRequest

logger = get_logger("routers.replicate")

router = APIRouter(prefix="/api", tags=["replicate"])

TOKEN_MISSING_MESSAGE = "Server Error: REPLICATE_API_TOKEN is not configured."
INVALID_ID_MESSAGE = "Missing or invalid prediction ID"


@router.options("/replicate")
async def preflight() -> Response:
    return Response(status_code=200, headers=proxy_headers())


@router.post("/replicate")
async def create_prediction(payload: PredictionCreateRequest) -> JSONResponse:
    token = _server_token()
    if token is None:
        return _error(500, TOKEN_MISSING_MESSAGE)

    try:
        status, body = await upstream.create_prediction(token, payload.version, payload.input)
    except httpx.HTTPError as exc:
        logger.error("Prediction create failed: %s", exc)
        return _error(500, str(exc) or exc.__class__.__name__)

    if status != 201:
        return _error(500, _detail(body) or "Failed to create prediction")
    return JSONResponse(status_code=201, content=body, headers=proxy_headers())


@router.get("/replicate")
async def get_prediction(request: Request) -> JSONResponse:
    token = _server_token()
    if token is None:
        return _error(500, TOKEN_MISSING_MESSAGE)

    ids = request.query_params.getlist("id")
    if len(ids) != 1 or not ids[0]:
        return _error(400, INVALID_ID_MESSAGE)

    try:
        status, body = await upstream.get_prediction(token, ids[0])
    except httpx.HTTPError as exc:
        logger.error("Prediction status check failed for %s: %s", ids[0], exc)
        return _error(500, str(exc) or exc.__class__.__name__)

    if status != 200:
        return _error(500, _detail(body) or "Failed to fetch prediction")
    return JSONResponse(status_code=200, content=body, headers=proxy_headers())


@router.api_route("/replicate", methods=["PUT", "PATCH", "DELETE", "HEAD", "TRACE", "CONNECT"])
async def method_not_allowed() -> JSONResponse:
    return _error(405, "Method not allowed")


def _server_token() -> str | None:
    return resolve_api_key(get_settings().REPLICATE_API_TOKEN)


def _detail(body: Any) -> str | None:
    if isinstance(body, dict):
        detail = body.get("detail")
        return str(detail) if detail else None
    return None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=proxy_headers())
