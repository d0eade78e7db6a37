"""SQLAlchemy models for database tables.

Provides ORM models for account tables. Catalog tables live in
``app.catalog.models``.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Column, DateTime, String

from app.infrastructure.database import Base


# ============================================================================
# User Models
# ============================================================================


class UserModel(Base):
    """User account.

    Owns the products it creates. The password is stored only as a
    bcrypt hash.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserModel(id={self.id}, username={self.username})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary without the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
