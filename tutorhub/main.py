# tutorhub/main.py
"""
FastAPI application for TutorHub.

Mounts the versioned routers under /api/v1 and exposes /health and
/metrics for operations.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import settings
from .core.exceptions import DomainException, RepositoryException
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import api_router

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Starting TutorHub %s (environment=%s, business timezone=%s)",
        __version__,
        settings.environment,
        settings.business_timezone,
    )
    yield
    logger.info("TutorHub shutting down")


app = FastAPI(title="TutorHub Scheduling API", version=__version__, lifespan=app_lifespan)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"message": exc.message, "code": exc.code, "details": exc.details}},
    )


@app.exception_handler(RepositoryException)
async def repository_exception_handler(request: Request, exc: RepositoryException) -> JSONResponse:
    logger.error("Unhandled repository error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"message": "Database operation failed", "code": "REPOSITORY_ERROR"}},
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, str]:
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
