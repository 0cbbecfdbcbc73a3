"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import (
    ConflictError,
    DeadlineExceededError,
    DomainError,
    HashingError,
    InvalidHashFormatError,
    NotFoundError,
    RequestCancelledError,
    ValidationError,
)
from app.core.logging import setup_logging

logger = logging.getLogger(__name__)

# Most specific first; DomainError is the fallback
ERROR_STATUS_CODES = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (HashingError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (InvalidHashFormatError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (RequestCancelledError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (DeadlineExceededError, status.HTTP_504_GATEWAY_TIMEOUT),
]


def status_code_for(exc: DomainError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("%s %s store failure", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        content={"detail": "internal server error"})


setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="User management service.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json")

app.add_exception_handler(DomainError, domain_error_handler)
app.add_exception_handler(SQLAlchemyError, store_error_handler)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "healthy"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "user-service",
        "version": settings.VERSION
    }
