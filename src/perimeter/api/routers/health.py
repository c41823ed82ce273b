"""Health check endpoints."""

from fastapi import APIRouter, Response

from perimeter.core.logging import get_logger
from perimeter.database import ping_db
from perimeter.version import __version__

router = APIRouter()
logger = get_logger("api.health")


@router.get("/health")
async def health_check(response: Response) -> dict:
    """Report service and database liveness."""
    try:
        await ping_db()
    except Exception as e:
        logger.error("database_unavailable", error=str(e))
        response.status_code = 503
        return {"status": "degraded", "database": "unavailable", "version": __version__}

    return {"status": "healthy", "database": "ok", "version": __version__}


@router.get("/")
async def root() -> dict:
    return {"name": "Perimeter API", "version": __version__, "docs": "/docs"}
