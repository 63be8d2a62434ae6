"""ReelScript FastAPI application factory.

Configures logging and CORS from settings, exception handlers, the service
container, and includes API routes.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reelscript.api.router import router as api_router
from reelscript.auth.router import router as auth_router
from reelscript.core.config import Settings, get_settings
from reelscript.core.logging_utils import setup_logging
from reelscript.services.container import Services, build_services

logger = logging.getLogger("reelscript.main")


def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return consistent JSON for HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error("http error %s: %s", exc.status_code, exc.detail, exc_info=True)
    elif exc.status_code >= 400:
        logger.warning("http %s: %s", exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Return 500 JSON without exposing internal details."""
    logger.error("unhandled error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())
    setup_logging(settings)
    services = services or build_services(settings)

    if not services.settings.gemini_api_key:
        logger.info("config: GEMINI_API_KEY not set, analysis will serve the demo result")
    logger.info("config: data_dir=%s max_video_bytes=%s", settings.data_dir, settings.max_video_bytes)

    app = FastAPI(title="ReelScript")
    app.state.services = services

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")
    app.include_router(auth_router, prefix="/api/auth")
    return app
