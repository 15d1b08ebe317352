from __future__ import annotations

from fastapi import FastAPI

from wava.core.config import get_settings
from wava.core.logging import setup_logging
from wava.dependencies import register_exception_handlers
from wava.internal import admin
from wava.routers import detail_pages, generate, models, replicate, thumbnails


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=get_settings().APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    register_exception_handlers(app)

    app.include_router(models.router)
    app.include_router(generate.router)
    app.include_router(thumbnails.router)
    app.include_router(detail_pages.router)
    app.include_router(replicate.router)
    app.include_router(admin.router)

    return app


app = create_app()
