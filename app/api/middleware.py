"""API middleware for the Inventory API.

Provides:
- JWT bearer authentication
- Request ID correlation
- Error handling
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.domain.exceptions import UnauthorizedError
from app.infrastructure.security import decode_access_token

logger = structlog.get_logger()


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request with correlation ID.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with request ID header.
        """
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None

        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )

            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id

        return response


# ============================================================================
# JWT Authentication Middleware
# ============================================================================


# Paths that don't require authentication
PUBLIC_PATHS = {
    "",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/auth/register",
    "/api/auth/login",
}

PUBLIC_PREFIXES = ("/docs", "/redoc", "/uploads/")


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "error_code": "UNAUTHORIZED",
            "message": message,
            "details": {},
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


class JwtAuthMiddleware(BaseHTTPMiddleware):
    """Middleware for bearer token authentication.

    Verifies "Authorization: Bearer <jwt>" and stores the user id from
    the token's ``sub`` claim on ``request.state.user_id``.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Validate the access token for protected endpoints.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or 401 error.
        """
        path = request.url.path.rstrip("/")
        if (
            request.method == "OPTIONS"
            or path in PUBLIC_PATHS
            or request.url.path.startswith(PUBLIC_PREFIXES)
        ):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")

        if not auth_header:
            logger.warning(
                "Missing authorization header",
                path=path,
                method=request.method,
            )
            return _unauthorized("Missing Authorization header")

        parts = auth_header.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            logger.warning(
                "Invalid authorization format",
                path=path,
                method=request.method,
            )
            return _unauthorized("Invalid Authorization header format. Use 'Bearer <token>'")

        try:
            user_id = decode_access_token(parts[1])
        except UnauthorizedError as e:
            logger.warning(
                "Invalid access token",
                path=path,
                method=request.method,
            )
            return _unauthorized(e.message)

        request.state.user_id = user_id
        structlog.contextvars.bind_contextvars(user_id=user_id)

        try:
            return await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("user_id")


def get_current_user_id(request: Request) -> str:
    """Get the authenticated user id.

    Args:
        request: Current request.

    Returns:
        User id set by ``JwtAuthMiddleware``.

    Raises:
        UnauthorizedError: If the request was not authenticated.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise UnauthorizedError("User not found in request")
    return user_id


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling.

    Catches unhandled exceptions and returns standardized error responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Handle errors uniformly.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or error response.
        """
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", None)

            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error_code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": {},
                    "request_id": request_id,
                },
            )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
    """
    # Error handling
    app.add_middleware(ErrorHandlerMiddleware)

    # Bearer token authentication
    app.add_middleware(JwtAuthMiddleware)

    # Request ID correlation (outermost, so 401s carry an ID too)
    app.add_middleware(RequestIdMiddleware)
