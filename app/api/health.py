"""
Health check endpoints.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from bookserver_schemas.file_service import HealthCheckResponse, StorageHealthResponse
from app.core.dependencies import Storage
from app.core.errors import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def root():
    """Root endpoint, confirms the proxy is up."""
    return "bookserver proxy is running! Ready for uploads."


@router.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Basic liveness check, does not touch the remote storage."""
    return HealthCheckResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat()
    )


@router.get("/health/storage", response_model=StorageHealthResponse)
async def storage_health(storage: Storage):
    """
    Check connectivity to the remote storage.

    Returns 503 when credentials are missing or the storage is unreachable.
    """
    try:
        await run_in_threadpool(storage.ping)
        return StorageHealthResponse(status="ok", provider=storage.name)
    except StorageError as e:
        logger.error(f"Storage health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "provider": storage.name,
                "error": str(e)
            }
        )
