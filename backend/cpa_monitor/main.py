"""
CPA Monitor - FastAPI Application

Main entry point for the FastAPI backend.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cpa_monitor.core.config import settings
from cpa_monitor.core.exceptions import (
    CPAMonitorError,
    DataIntegrityError,
    EmptyInputError,
    MalformedRecordError,
    PlatformError,
    WarehouseError,
)
from cpa_monitor.api.v1 import router as v1_router
from cpa_monitor.models.common import ErrorResponse, ErrorDetail, ErrorCodes, HealthResponse


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    if not settings.google_ads_configured:
        logger.warning("Google Ads credentials incomplete; scheduled sync will fail")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="""
    Rolling Cost-Per-Acquisition monitoring for Google Ads and Facebook ad sets.

    ## Features

    * **CSV Upload** - Normalize Facebook Ads Manager exports (any header version)
    * **Integrity Guard** - Reject malformed or synthetic-looking batches
    * **Rolling CPA** - Current-day CPA against the trailing 7-day CPA per ad set
    * **Alerts** - Critical / warning / improvement buckets
    * **Chart Series** - Aggregate daily CPA with a 7-point rolling average
    """,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)


# CORS Middleware - strip trailing slashes from AnyHttpUrl strings
cors_origins = [origin.rstrip("/") for origin in settings.cors_origins]
if settings.debug:
    cors_origins.extend([
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ])
    # Remove duplicates
    cors_origins = list(set(cors_origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, exc: CPAMonitorError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details or None,
            )
        ).model_dump(),
    )


# Data problems the caller has to fix
@app.exception_handler(DataIntegrityError)
@app.exception_handler(MalformedRecordError)
@app.exception_handler(EmptyInputError)
async def data_error_handler(request: Request, exc: CPAMonitorError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


# Upstream collaborators
@app.exception_handler(PlatformError)
@app.exception_handler(WarehouseError)
async def upstream_error_handler(request: Request, exc: CPAMonitorError):
    logger.error(f"{request.method} {request.url.path} failed: {exc.code} - {exc.message}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=ErrorDetail(
                code=ErrorCodes.INTERNAL_ERROR,
                message="An unexpected error occurred. Please try again later.",
                details={"error": str(exc)} if settings.debug else None,
            )
        ).model_dump(),
    )


# Include API routers
app.include_router(v1_router, prefix="/api")


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """
    Health check endpoint.

    Returns the application status and version.
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# Root endpoint
@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
    }
