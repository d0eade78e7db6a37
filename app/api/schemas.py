"""API schemas for the Inventory API.

Pydantic models for request/response validation and serialization.
Resource payloads use camelCase on the wire; Python code uses the
snake_case attribute names.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# Decimal in Python, plain number in JSON.
Price = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base for resource schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class MessageResponse(CamelModel):
    """Plain confirmation."""

    message: str


# ============================================================================
# Auth Schemas
# ============================================================================


class RegisterRequest(CamelModel):
    """Request to create an account."""

    email: EmailStr = Field(..., description="Login email")
    username: str = Field(..., min_length=3, max_length=50, description="Public display name")
    password: str = Field(..., min_length=6, max_length=72, description="Plain password")


class LoginRequest(CamelModel):
    """Request to log in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """User account without credentials."""

    id: str
    email: str
    username: str
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    """User and bearer token."""

    user: UserResponse
    token: str = Field(..., description="JWT to send as 'Authorization: Bearer <token>'")


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(CamelModel):
    """Request to create a category."""

    name: str = Field(..., min_length=2, max_length=100, examples=["Electronics"])
    description: str | None = Field(
        default=None, examples=["Electronic devices and gadgets"]
    )


class CategoryUpdateRequest(CamelModel):
    """Partial category update."""

    name: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = None

    @model_validator(mode="after")
    def name_not_null(self) -> "CategoryUpdateRequest":
        """A sent name must be a real name."""
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self


class CategoryResponse(CamelModel):
    """Category details."""

    id: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime
    product_count: int | None = Field(
        default=None, description="Products in this category"
    )


# ============================================================================
# Product Schemas
# ============================================================================


class CategorySummary(CamelModel):
    """Category projection embedded in a product."""

    id: str
    name: str


class OwnerSummary(CamelModel):
    """Owner projection embedded in a product."""

    id: str
    username: str


class ProductCreateRequest(CamelModel):
    """Request to create a product.

    Sent as JSON, or as multipart form fields with an optional
    ``image`` file part.
    """

    name: str = Field(..., min_length=2, max_length=255, examples=["iPhone 15 Pro"])
    description: str | None = Field(
        default=None, examples=["Latest iPhone with advanced features"]
    )
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, examples=[999.99])
    stock: int = Field(..., ge=0, examples=[50])
    category_id: str = Field(
        ...,
        min_length=1,
        description="Category ID. The category must exist before creating products.",
    )
    image_url: str | None = Field(
        default=None,
        max_length=1000,
        description="Image URL stored as given. An uploaded image file takes precedence.",
    )

    @field_validator("description", "image_url", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat empty form fields as absent."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ProductUpdateRequest(CamelModel):
    """Partial product update. Only the fields sent are changed."""

    name: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    category_id: str | None = Field(default=None, min_length=1)
    image_url: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "ProductUpdateRequest":
        """Reject explicit nulls for fields a product cannot lack."""
        for name in ("name", "price", "stock", "category_id"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ProductResponse(CamelModel):
    """Product with category and owner projections."""

    id: str
    name: str
    description: str | None = None
    price: Price
    stock: int
    category_id: str
    owner_id: str
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime
    category: CategorySummary | None = None
    owner: OwnerSummary | None = None


class ProductCreateResponse(CamelModel):
    """Result of creating a product."""

    product: ProductResponse
    image_url: str | None = None
    message: str


class ProductListResponse(CamelModel):
    """Paginated product listing."""

    products: list[ProductResponse]
    total: int = Field(..., description="Products matching the filter")
    page: int
    limit: int
    total_pages: int
    message: str | None = None


class ProductSearchResponse(CamelModel):
    """Search results."""

    products: list[ProductResponse]
    message: str | None = None


class ImageUploadResponse(CamelModel):
    """Result of uploading a product image."""

    message: str
    image_url: str
    product: ProductResponse
