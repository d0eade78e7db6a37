"""Category API endpoints.

Provides CRUD endpoints for product categories.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    CategoryCreateRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    ErrorResponse,
    MessageResponse,
)
from app.catalog.categories import CategoryDetails, CategoryService
from app.catalog.models import Category
from app.infrastructure.database import get_session

router = APIRouter(prefix="/api/categories", tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_category_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CategoryService:
    """Get category service bound to the request session."""
    return CategoryService(session)


# ============================================================================
# Converters
# ============================================================================


def category_to_response(
    category: Category, product_count: int | None = None
) -> CategoryResponse:
    """Convert Category model to response schema."""
    return CategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        created_at=category.created_at,
        updated_at=category.updated_at,
        product_count=product_count,
    )


def details_to_response(details: CategoryDetails) -> CategoryResponse:
    """Convert category details to response schema."""
    return category_to_response(details.category, details.product_count)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create category",
    description="Create a product category. Names are unique.",
)
async def create_category(
    body: CategoryCreateRequest,
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> CategoryResponse:
    """Create a new category."""
    category = await service.create(body.name, body.description)
    return category_to_response(category, product_count=0)


@router.get(
    "",
    response_model=list[CategoryResponse],
    responses={401: {"model": ErrorResponse}},
    summary="List categories",
    description="List all categories with their product counts, most recent first.",
)
async def list_categories(
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> list[CategoryResponse]:
    """List categories."""
    return [details_to_response(d) for d in await service.list_all()]


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get category",
)
async def get_category(
    category_id: str,
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> CategoryResponse:
    """Get a category by ID with its product count."""
    return details_to_response(await service.get(category_id))


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update category",
    description="Change the name or description of a category.",
)
async def update_category(
    category_id: str,
    body: CategoryUpdateRequest,
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> CategoryResponse:
    """Apply a partial update to a category."""
    category = await service.update(category_id, body.model_dump(exclude_unset=True))
    return category_to_response(category)


@router.delete(
    "/{category_id}",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Delete category",
    description="Delete a category. Rejected while any product still uses it.",
)
async def delete_category(
    category_id: str,
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> MessageResponse:
    """Delete an empty category."""
    await service.delete(category_id)
    return MessageResponse(message="Category deleted successfully")
