"""Category service.

CRUD for product categories. Names are unique and a category cannot be
deleted while products still reference it.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.models import Category
from app.catalog.repository import CategoryRepository, ProductRepository
from app.domain.exceptions import BadRequestError, CategoryNotFoundError, ConflictError

logger = structlog.get_logger()


@dataclass
class CategoryDetails:
    """Category with the number of products in it."""

    category: Category
    product_count: int


class CategoryService:
    """Service for category operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.repository = CategoryRepository(session)
        self.products = ProductRepository(session)

    async def create(self, name: str, description: str | None = None) -> Category:
        """Create a category.

        Raises:
            ConflictError: If the name is taken.
        """
        if await self.repository.get_by_name(name) is not None:
            raise ConflictError(
                "Category with this name already exists",
                details={"name": name},
            )

        category = await self.repository.save(Category(name=name, description=description))
        logger.info("Category created", category_id=category.id, name=name)
        return category

    async def list_all(self) -> list[CategoryDetails]:
        """List categories with product counts, most recent first."""
        rows = await self.repository.list_with_counts()
        return [CategoryDetails(category=c, product_count=count) for c, count in rows]

    async def get(self, category_id: str) -> CategoryDetails:
        """Get a category with its product count.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        category = await self._get_or_raise(category_id)
        count = await self.products.count_by_category(category_id)
        return CategoryDetails(category=category, product_count=count)

    async def update(self, category_id: str, changes: dict[str, Any]) -> Category:
        """Apply a partial update.

        Raises:
            CategoryNotFoundError: If the category does not exist.
            ConflictError: If renaming to a name another category holds.
        """
        category = await self._get_or_raise(category_id)

        new_name = changes.get("name")
        if new_name and new_name != category.name:
            if await self.repository.get_by_name(new_name) is not None:
                raise ConflictError(
                    "Category with this name already exists",
                    details={"name": new_name},
                )

        for field_name, value in changes.items():
            setattr(category, field_name, value)
        await self.repository.save(category)

        logger.info("Category updated", category_id=category_id, fields=sorted(changes))
        return category

    async def delete(self, category_id: str) -> None:
        """Delete an empty category.

        Raises:
            CategoryNotFoundError: If the category does not exist.
            BadRequestError: If products still reference it.
        """
        category = await self._get_or_raise(category_id)

        if await self.products.count_by_category(category_id) > 0:
            raise BadRequestError(
                "Cannot delete category that has products. "
                "Please remove all products first.",
                details={"category_id": category_id},
            )

        await self.repository.delete(category)
        logger.info("Category deleted", category_id=category_id)

    async def _get_or_raise(self, category_id: str) -> Category:
        category = await self.repository.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category
