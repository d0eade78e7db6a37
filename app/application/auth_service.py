"""Authentication application service.

Registers users and logs them in, issuing a JWT access token on
success.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.exceptions import ConflictError, NotFoundError, UnauthorizedError
from app.infrastructure.models import UserModel
from app.infrastructure.security import create_access_token, hash_password, verify_password

logger = structlog.get_logger()


@dataclass
class AuthResult:
    """Authenticated user and their access token."""

    user: UserModel
    token: str


class AuthService:
    """Service for registration and login."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def register(self, email: str, username: str, password: str) -> AuthResult:
        """Create an account.

        Raises:
            ConflictError: If the email or username is taken.
        """
        existing = await self.session.execute(
            select(UserModel).where(
                or_(UserModel.email == email, UserModel.username == username)
            )
        )
        if existing.scalars().first() is not None:
            raise ConflictError("User with this email or username already exists")

        user = UserModel(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        await self.session.flush()

        logger.info("User registered", user_id=user.id, username=username)
        return AuthResult(user=user, token=create_access_token(user.id, user.email))

    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a token.

        Raises:
            UnauthorizedError: If the email is unknown or the password
                does not match. Both cases give the same message.
        """
        result = await self.session.execute(select(UserModel).where(UserModel.email == email))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Login failed", email=email)
            raise UnauthorizedError("Invalid credentials")

        logger.info("User logged in", user_id=user.id)
        return AuthResult(user=user, token=create_access_token(user.id, user.email))

    async def get_user(self, user_id: str) -> UserModel:
        """Get a user by ID.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self.session.get(UserModel, user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user
