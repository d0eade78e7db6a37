"""Catalog repositories for database operations.

Provides CRUD operations for products and categories with filtering,
text search and pagination.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.catalog.filters import ProductFilter
from app.catalog.models import Category, Product
from app.domain.exceptions import ProductNotFoundError

LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Build a substring LIKE pattern matching ``term`` literally."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def text_condition(term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match over name or description."""
    pattern = like_pattern(term)
    return or_(
        Product.name.ilike(pattern, escape=LIKE_ESCAPE),
        Product.description.ilike(pattern, escape=LIKE_ESCAPE),
    )


class ProductRepository:
    """Repository for Product database operations.

    Handles all database interactions for products including
    filtering, text search and pagination. Ownership is not checked
    here; that belongs to the service.

    Example usage:
        async with async_session_factory() as session:
            repo = ProductRepository(session)
            products, total = await repo.find_many(
                build_product_filter(min_price=Decimal("10"), limit=20)
            )
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, product: Product) -> Product:
        """Insert a product.

        Args:
            product: Product to save.

        Returns:
            Saved product with its id assigned.
        """
        self.session.add(product)
        await self.session.flush()
        return product

    async def get_by_id(self, product_id: str) -> Product:
        """Get product by ID with category and owner loaded.

        Args:
            product_id: Product ID.

        Returns:
            The product.

        Raises:
            ProductNotFoundError: If no product has this ID.
        """
        query = (
            select(Product)
            .where(Product.id == product_id)
            .options(selectinload(Product.category), selectinload(Product.owner))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        product = result.scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def find_many(self, filters: ProductFilter) -> tuple[list[Product], int]:
        """Find one page of products and the total match count.

        Args:
            filters: Normalized filter and pagination window.

        Returns:
            Tuple of (products on this page, total matching products).
        """
        conditions = self._build_conditions(filters)

        query = (
            select(Product)
            .options(selectinload(Product.category), selectinload(Product.owner))
            .order_by(Product.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.session.execute(query)
        products = list(result.scalars().all())

        total = await self.count(conditions)
        return products, total

    async def search(self, term: str) -> Sequence[Product]:
        """Find every product whose name or description contains ``term``.

        Args:
            term: Search term, already trimmed and non-empty.

        Returns:
            Matching products, most recent first.
        """
        query = (
            select(Product)
            .where(text_condition(term))
            .options(selectinload(Product.category), selectinload(Product.owner))
            .order_by(Product.created_at.desc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(self, conditions: list[ColumnElement[bool]] | None = None) -> int:
        """Count products matching conditions.

        Args:
            conditions: SQL conditions combined with AND.

        Returns:
            Count of matching products.
        """
        query = select(func.count()).select_from(Product)
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_by_category(self, category_id: str) -> int:
        """Count products in a category."""
        return await self.count([Product.category_id == category_id])

    async def update(self, product: Product, changes: dict[str, Any]) -> Product:
        """Apply a partial update.

        Args:
            product: Loaded product to change.
            changes: Column name to new value, only for fields present
                in the request.

        Returns:
            Reloaded product.
        """
        for field_name, value in changes.items():
            setattr(product, field_name, value)
        await self.session.flush()
        return await self.get_by_id(product.id)

    async def delete(self, product_id: str) -> None:
        """Delete a product.

        Args:
            product_id: Product ID.

        Raises:
            ProductNotFoundError: If no product has this ID.
        """
        product = await self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        await self.session.delete(product)
        await self.session.flush()

    def _build_conditions(self, filters: ProductFilter) -> list[ColumnElement[bool]]:
        """Translate a filter into SQL conditions."""
        conditions: list[ColumnElement[bool]] = []

        if filters.category_id is not None:
            conditions.append(Product.category_id == filters.category_id)

        if filters.min_price is not None:
            conditions.append(Product.price >= filters.min_price)

        if filters.max_price is not None:
            conditions.append(Product.price <= filters.max_price)

        if filters.search:
            conditions.append(text_condition(filters.search))

        return conditions


class CategoryRepository:
    """Repository for Category database operations.

    Also serves as the category lookup the product service depends on:
    existence checks and the sorted list of valid choices.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, category: Category) -> Category:
        """Insert or flush a category."""
        self.session.add(category)
        await self.session.flush()
        return category

    async def get_by_id(self, category_id: str) -> Category | None:
        """Get category by ID.

        Args:
            category_id: Category ID.

        Returns:
            Category if found, None otherwise.
        """
        return await self.session.get(Category, category_id)

    async def get_by_name(self, name: str) -> Category | None:
        """Get category by its unique name."""
        result = await self.session.execute(select(Category).where(Category.name == name))
        return result.scalar_one_or_none()

    async def exists(self, category_id: str) -> bool:
        """Check whether a category exists."""
        return await self.get_by_id(category_id) is not None

    async def list_choices(self) -> list[dict[str, str]]:
        """List every category as ``{"id", "name"}``, sorted by name.

        Returns:
            Category choices.
        """
        result = await self.session.execute(
            select(Category.id, Category.name).order_by(Category.name.asc())
        )
        return [{"id": row.id, "name": row.name} for row in result.all()]

    async def list_with_counts(self) -> list[tuple[Category, int]]:
        """List categories with product counts, most recent first.

        Returns:
            List of (category, product_count) pairs.
        """
        product_count = func.count(Product.id).label("product_count")
        query = (
            select(Category, product_count)
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.created_at.desc())
        )
        result = await self.session.execute(query)
        return [(row.Category, row.product_count) for row in result.all()]

    async def delete(self, category: Category) -> None:
        """Delete a category."""
        await self.session.delete(category)
        await self.session.flush()
