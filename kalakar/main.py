"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from kalakar.api.v1.router import api_router
from kalakar.core.config import settings
from kalakar.core.exceptions import ConflictError, InvalidInputError, KalakarError, NotFoundError
from kalakar.core.logging_config import (
    conversation_id_var,
    generate_request_id,
    request_id_var,
    setup_logging,
)
from kalakar.core.rate_limit import limiter

logger = logging.getLogger(__name__)

# Domain errors that reach API callers, with their status and error code
_ERROR_RESPONSES: dict[type[KalakarError], tuple[int, str]] = {
    NotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    InvalidInputError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_input"),
    ConflictError: (status.HTTP_409_CONFLICT, "conflict"),
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging(debug=settings.debug)
    logger.info(
        "Starting %s v%s (%s, model=%s)",
        settings.project_name,
        settings.version,
        settings.environment,
        settings.chat_model,
    )
    yield
    logger.info("Shutting down...")


def _init_sentry() -> None:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.version,
        traces_sample_rate=0.1,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to JSON error bodies."""

    async def domain_error_handler(_request: Request, exc: Exception) -> JSONResponse:
        status_code, code = next(
            response for error_type, response in _ERROR_RESPONSES.items()
            if isinstance(exc, error_type)
        )
        if status_code == status.HTTP_409_CONFLICT:
            logger.warning("Rejected concurrent update: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})

    for error_type in _ERROR_RESPONSES:
        app.add_exception_handler(error_type, domain_error_handler)

    # Keeps CORS headers on 500s
    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )


def _add_middleware(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # The artisan app and the onboarding dashboard are the only browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    @app.middleware("http")
    async def log_context_middleware(request: Request, call_next: Any) -> Response:
        rid = request.headers.get("X-Request-ID") or generate_request_id()
        request_id_var.set(rid)
        conversation_id_var.set("")
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings.sentry_dsn:
        _init_sentry()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Guided product onboarding conversations for artisans.",
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url=f"{settings.api_v1_prefix}/docs",
        redoc_url=f"{settings.api_v1_prefix}/redoc",
        lifespan=lifespan,
    )

    _add_middleware(app)
    app.include_router(api_router, prefix=settings.api_v1_prefix)
    _register_exception_handlers(app)

    @app.get("/docs", include_in_schema=False)
    async def docs_redirect() -> RedirectResponse:
        return RedirectResponse(url=f"{settings.api_v1_prefix}/docs")

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Service name, version and entry points."""
        return {
            "name": settings.project_name,
            "version": settings.version,
            "docs": f"{settings.api_v1_prefix}/docs",
            "health": f"{settings.api_v1_prefix}/health",
            "conversations": f"{settings.api_v1_prefix}/conversations",
        }

    return app


app = create_app()
