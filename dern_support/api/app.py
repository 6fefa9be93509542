"""FastAPI application for Dern Support scheduling."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dern_support import __version__
from dern_support.api.middleware import RequestLoggingMiddleware
from dern_support.api.routes import health, notifications, scheduling
from dern_support.config import get_settings
from dern_support.scheduling.errors import SchedulingError
from dern_support.scheduling.locks import TechnicianLocks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(
        f"Starting Dern Support API v{__version__} "
        f"(page_size={settings.default_page_size}, "
        f"availability_counts_terminal={settings.availability_counts_terminal_schedules})"
    )

    yield

    logger.info("Shutting down Dern Support API")


def _field_name(loc: tuple) -> str:
    # drop the leading "body" / "query" / "path" segment
    parts = [str(p) for p in loc[1:]] or [str(p) for p in loc]
    return ".".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain and validation errors into JSON responses."""
    settings = get_settings()

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        logger.info(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({"detail": exc.message, **exc.payload()}),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.info(f"Validation failed on {request.method} {request.url.path}: {errors}")
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": str(exc) if settings.debug_mode else None,
            },
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dern Support API",
        description="Technician scheduling and conflict detection for support requests",
        version=__version__,
        lifespan=lifespan,
    )

    # One lock registry per application instance
    app.state.technician_locks = TechnicianLocks()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, tags=["health"])
    app.include_router(scheduling.router, prefix="/api/v1", tags=["scheduling"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["notifications"])

    register_exception_handlers(app)

    return app
