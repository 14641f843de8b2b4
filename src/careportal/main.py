"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import assignments, auth, corrections, customers, health, km_entries, time_entries, users
from .config import settings
from .upstream.errors import UpstreamError

logger = logging.getLogger(__name__)


async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    """Relay upstream failures with their status and a classified ``code``."""
    logger.info(f"{request.method} {request.url.path} -> upstream {exc.status} ({exc.code.value})")
    return JSONResponse(status_code=exc.status, content=exc.to_payload())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render local rejections in the same ``{"message": ...}`` shape as upstream ones."""
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"message": "Ungültige Anfrage", "details": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name, root_path="")
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_exception_handler(UpstreamError, upstream_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(users.router, prefix=settings.api_prefix)
    app.include_router(assignments.router, prefix=settings.api_prefix)
    app.include_router(time_entries.router, prefix=settings.api_prefix)
    app.include_router(km_entries.router, prefix=settings.api_prefix)
    app.include_router(corrections.router, prefix=settings.api_prefix)
    app.include_router(customers.router, prefix=settings.api_prefix)
    return app


app = create_app()
