from __future__ import annotations

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wava.core.config import get_settings
from wava.core.credentials import require_credential
from wava.core.errors import GatewayError
from wava.studio.errors import StudioAPIError, map_generation_error


def get_gemini_api_key(
    x_goog_api_key: str | None = Header(default=None, alias="x-goog-api-key"),
) -> str:
    return require_credential("gemini", x_goog_api_key, get_settings().GEMINI_API_KEY)


def proxy_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Origin": get_settings().CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
        "Access-Control-Allow-Headers": (
            "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
            "Content-MD5, Content-Type, Date, X-Api-Version"
        ),
    }


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StudioAPIError)
    async def handle_studio_error(
        _request: Request,
        exc: StudioAPIError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_error()},
        )

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(
        _request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        studio_error = map_generation_error(exc)
        return JSONResponse(
            status_code=studio_error.status_code,
            content={"error": studio_error.to_error()},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        first_error = exc.errors()[0]["msg"] if exc.errors() else "Invalid request"

        if request.url.path.startswith("/api/"):
            return JSONResponse(
                status_code=400,
                content={"error": first_error},
                headers=proxy_headers(),
            )

        studio_error = StudioAPIError(
            status_code=400,
            message=first_error,
            error_type="invalid_request_error",
            code="invalid_request",
        )
        return JSONResponse(
            status_code=studio_error.status_code,
            content={"error": studio_error.to_error()},
        )
