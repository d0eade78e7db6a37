"""Authentication API endpoints.

Provides registration, login and the current user's profile.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.middleware import get_current_user_id
from app.api.schemas import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)
from app.application.auth_service import AuthResult, AuthService
from app.infrastructure.database import get_session
from app.infrastructure.models import UserModel

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def get_service(session: Annotated[AsyncSession, Depends(get_session)]) -> AuthService:
    """Get auth service bound to the request session."""
    return AuthService(session)


def user_to_response(user: UserModel) -> UserResponse:
    """Convert UserModel to response schema."""
    return UserResponse(**user.to_dict())


def auth_to_response(result: AuthResult) -> AuthResponse:
    """Convert an auth result to response schema."""
    return AuthResponse(user=user_to_response(result.user), token=result.token)


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    body: RegisterRequest,
    service: Annotated[AuthService, Depends(get_service)],
) -> AuthResponse:
    """Create an account and return an access token."""
    result = await service.register(body.email, body.username, body.password)
    return auth_to_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Login user",
)
async def login(
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_service)],
) -> AuthResponse:
    """Check credentials and return an access token."""
    return auth_to_response(await service.login(body.email, body.password))


@router.get(
    "/me",
    response_model=UserResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get current user",
)
async def me(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[AuthService, Depends(get_service)],
) -> UserResponse:
    """Get the profile of the authenticated user."""
    return user_to_response(await service.get_user(user_id))
