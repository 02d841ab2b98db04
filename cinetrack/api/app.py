"""
FastAPI application factory for CineTrack.

This module creates the main FastAPI app with:
- CORS configuration for frontends
- Document store lifecycle management
- Starter catalog seeding
- Error mapping from CineTrackError to JSON responses
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..auth import SessionManager
from ..catalog import CatalogService
from ..config import AppConfig
from ..context import AppContext
from ..errors import (
    AccessDeniedError,
    AuthenticationError,
    CineTrackError,
    InvalidGroupError,
    MutationError,
    NotFoundError,
    PartialMutationError,
    ValidationError,
)
from ..requests import RequestActionExecutor
from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)

# Most specific first: PartialMutationError is a MutationError.
_STATUS_CODES: list[tuple[type[CineTrackError], int]] = [
    (ValidationError, 400),
    (InvalidGroupError, 400),
    (AuthenticationError, 401),
    (AccessDeniedError, 403),
    (NotFoundError, 404),
    (PartialMutationError, 500),
    (MutationError, 502),
]


def status_code_for(error: CineTrackError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage document store lifecycle."""
    context: AppContext = app.state.context

    await context.open()
    if context.config.catalog.seed_on_start:
        inserted = await app.state.catalog.seed_if_empty()
        if inserted:
            logger.info("Starter catalog seeded", extra={"inserted": inserted})

    yield

    await context.close()


def create_app(
    config: AppConfig | None = None,
    context: AppContext | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration (loaded from environment if omitted)
        context: Prebuilt context, e.g. around an in-memory store in tests
        settings: HTTP settings (loaded from environment if omitted)
    """
    if context is None:
        context = AppContext.from_config(config or AppConfig.from_env())
    settings = settings or Settings()

    app = FastAPI(
        title="CineTrack",
        description=(
            "Movie catalog with visitor requests. Visitors browse and request "
            "titles; the administrator curates the catalog and works through "
            "requests grouped by title."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.state.context = context
    app.state.settings = settings
    app.state.sessions = SessionManager(context.config.auth)
    app.state.catalog = CatalogService(context)
    app.state.executor = RequestActionExecutor(context)

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(CineTrackError)
    async def handle_cinetrack_error(request: Request, exc: CineTrackError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(
                f"Request failed: {exc.message}",
                extra={"path": request.url.path, "error_code": exc.code},
            )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "error_code": exc.code, "details": exc.details},
        )

    # API routes
    app.include_router(router, prefix="/api/v1")

    return app
