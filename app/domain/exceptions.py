"""Domain exceptions.

All domain-level errors that represent business rule violations.
Services raise these and the API layer maps each class to an HTTP
status through ``status_code`` and ``error_code``.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    status_code: int = 400
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BadRequestError(DomainError):
    """Raised for invalid input, bad files, or a missing required relation."""

    status_code = 400
    error_code = "BAD_REQUEST"


class UnauthorizedError(DomainError):
    """Raised when credentials are missing or invalid."""

    status_code = 401
    error_code = "UNAUTHORIZED"


class ForbiddenError(DomainError):
    """Raised when the caller does not own the resource being changed."""

    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(DomainError):
    """Raised when a product, category, user or image does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(DomainError):
    """Raised when a unique name, email or username is already taken."""

    status_code = 409
    error_code = "CONFLICT"


# ============================================================================
# Specific errors
# ============================================================================


class ProductNotFoundError(NotFoundError):
    """Raised when a product id does not resolve."""

    def __init__(self, product_id: str) -> None:
        """Initialize product not found error.

        Args:
            product_id: ID of the missing product.
        """
        super().__init__(
            f"Product with ID {product_id} not found",
            details={"product_id": product_id},
        )


class CategoryNotFoundError(NotFoundError):
    """Raised when a category id does not resolve.

    When creating a product, the caller gets the list of valid
    categories so it can pick one without another round trip.
    """

    def __init__(
        self,
        category_id: str,
        available: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialize category not found error.

        Args:
            category_id: ID of the missing category.
            available: Existing categories as ``{"id", "name"}`` dicts,
                sorted by name. None when no listing is wanted.
        """
        message = f"Category with ID {category_id} not found"
        details: dict[str, Any] = {"category_id": category_id}

        if available is not None:
            if not available:
                message += (
                    ". No categories exist yet. Please create a category first "
                    "using POST /api/categories before creating products."
                )
            else:
                choices = ", ".join(f"{c['id']}: {c['name']}" for c in available)
                message += (
                    f". Available categories: {choices}. Please create a category "
                    "first using POST /api/categories before creating products."
                )
            details["available_categories"] = available

        super().__init__(message, details=details)
