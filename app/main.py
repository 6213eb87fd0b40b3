"""
Bookserver Proxy - Main Application
FastAPI app that forwards book uploads to cloud storage and streams them back.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.dependencies import get_file_cache, get_storage_provider
from app.api import files, health

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Runs on startup and shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")

    # Basic check - the service still starts, uploads fail until configured
    provider = get_storage_provider()
    provider.check_configuration()

    logger.info(f"Server running on port {settings.PORT}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    get_file_cache().clear()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Upload proxy for cloud storage with HTTP Range downloads",
    version=settings.APP_VERSION,
    lifespan=lifespan
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Content-Length", "Accept-Ranges"],
)


# Include API routers
app.include_router(health.router)
app.include_router(files.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Render HTTP errors as {"success": false, "error": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail
        },
        headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Render request validation errors in the same error shape."""
    errors = exc.errors()
    # A "file" field that is not a file part counts as a missing upload
    if any(tuple(err.get("loc", ())) == ("body", "file") for err in errors):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "No file uploaded"}
        )

    message = "; ".join(
        ".".join(str(part) for part in err.get("loc", ())) + f": {err.get('msg', 'invalid')}"
        for err in errors
    )
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": message or "Invalid request"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_keep_alive=7200,  # 2 hours for very large book uploads
    )
