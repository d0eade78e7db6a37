"""Inventory API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, exception handlers and startup/shutdown
events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.auth import router as auth_router
from app.api.categories import router as categories_router
from app.api.health import router as health_router
from app.api.middleware import setup_middleware
from app.api.products import router as products_router
from app.domain.exceptions import DomainError
from app.infrastructure.blob_store import BlobStoreError, close_blob_store
from app.infrastructure.config import settings
from app.infrastructure.logging import configure_logging

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    logger.info(
        "Starting Inventory API",
        version=settings.api_version,
        debug=settings.debug,
        blob_store=settings.blob_store_backend,
    )

    yield

    # Shutdown
    await close_blob_store()
    logger.info("Shutting down Inventory API")


app = FastAPI(
    title="E-commerce Inventory API",
    description="Products, categories and product images for an online store",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, JWT auth, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(auth_router)
app.include_router(categories_router)
app.include_router(products_router)

# Locally stored images
if settings.blob_store_backend == "local":
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": jsonable_encoder(details or {}),
            "request_id": getattr(request.state, "request_id", None),
        },
        headers=headers,
    )


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Handle domain errors with their mapped status code."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(
        request,
        exc.status_code,
        exc.error_code,
        exc.message,
        exc.details,
        headers=headers,
    )


@app.exception_handler(BlobStoreError)
async def blob_store_exception_handler(request: Request, exc: BlobStoreError):
    """Handle object storage failures as a bad gateway."""
    logger.error(
        "Blob store request failed",
        path=request.url.path,
        error=str(exc),
        upstream_status=exc.status_code,
    )
    return error_response(
        request,
        502,
        "BLOB_STORE_ERROR",
        f"Image storage failed: {exc}",
        {"upstream_status": exc.status_code} if exc.status_code else None,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    # Extract error details from exception
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return error_response(
        request,
        exc.status_code,
        error_code,
        message,
        details,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with consistent format."""
    return error_response(
        request,
        422,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": exc.errors()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return error_response(
        request,
        500,
        "INTERNAL_ERROR",
        "An internal error occurred",
    )
