"""Password hashing and access tokens.

Passwords are hashed with bcrypt. Access tokens are signed JWTs whose
``sub`` claim is the user id.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.domain.exceptions import UnauthorizedError
from app.infrastructure.config import settings


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against a stored hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed access token.

    Args:
        user_id: Subject of the token.
        email: User email, carried as a convenience claim.
        expires_delta: Lifetime. Defaults to ``settings.jwt_expire_minutes``.

    Returns:
        Encoded JWT.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expire_minutes)

    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Verify a token and return its user id.

    Raises:
        UnauthorizedError: If the token is malformed, expired, badly
            signed or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise UnauthorizedError("Invalid or expired token") from e

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid or expired token")
    return str(user_id)
