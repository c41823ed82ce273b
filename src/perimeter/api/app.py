"""FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from perimeter.api.routers import health, infrastructure
from perimeter.core.config import get_settings
from perimeter.core.exceptions import NotFoundError, PerimeterError, ScanConflictError
from perimeter.core.logging import get_logger, setup_logging
from perimeter.database import close_db, init_db
from perimeter.version import __version__

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    await init_db()
    logger.info("api_started", version=__version__)
    yield
    await close_db()


async def perimeter_error_handler(request: Request, exc: PerimeterError) -> JSONResponse:
    """Map domain errors that escape a route to HTTP responses."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ScanConflictError):
        status_code = 409
    else:
        status_code = 400
    logger.warning(
        "request_failed",
        path=request.url.path,
        error=exc.message,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()

    application = FastAPI(
        title="Perimeter API",
        description="Perimeter - infrastructure exposure scanner",
        version=__version__,
        lifespan=lifespan,
    )
    # Origins come from the CORS_ORIGINS environment variable
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    application.add_exception_handler(PerimeterError, perimeter_error_handler)

    application.include_router(health.router, tags=["Health"])
    application.include_router(
        infrastructure.router,
        prefix="/api/v1/infrastructure",
        tags=["Infrastructure"],
    )
    return application


app = create_app()
