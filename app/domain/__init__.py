"""Domain layer - errors shared by every service.

Services raise these exceptions; the API layer renders them as the
standard error envelope using each class's ``status_code`` and
``error_code``.

Example usage:
    from app.domain import ForbiddenError

    if product.owner_id != requester_id:
        raise ForbiddenError("You can only update your own products")
"""

from app.domain.exceptions import (
    BadRequestError,
    CategoryNotFoundError,
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    ProductNotFoundError,
    UnauthorizedError,
)

__all__ = [
    "DomainError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ProductNotFoundError",
    "CategoryNotFoundError",
]
