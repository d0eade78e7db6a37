"""Product service.

High-level service that combines repository operations with the
catalog's business rules: category existence, ownership of mutated
products, and coordination of image uploads with the blob store.
"""

import math
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.filters import ProductFilter, normalize_search
from app.catalog.images import ImageUpload, ProductImageStorage
from app.catalog.models import Product
from app.catalog.repository import CategoryRepository, ProductRepository
from app.domain.exceptions import (
    BadRequestError,
    CategoryNotFoundError,
    ForbiddenError,
    UnauthorizedError,
)
from app.infrastructure.blob_store import BlobStoreError
from app.infrastructure.models import UserModel

logger = structlog.get_logger()

PRODUCT_CREATED = "Product created successfully"
PRODUCT_CREATED_WITH_IMAGE = "Product created successfully with image"
NO_PRODUCTS_FOUND = "No products found"
NO_SEARCH_MATCHES = "No products found matching your search"


class _Unset:
    """Marker for a patch field the client did not send."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


# ============================================================================
# Inputs
# ============================================================================


@dataclass
class NewProduct:
    """Fields for creating a product."""

    name: str
    price: Decimal
    stock: int
    category_id: str
    description: str | None = None
    image_url: str | None = None


@dataclass
class ProductPatch:
    """Partial product update.

    Only fields that are not ``UNSET`` are written. ``None`` on a
    nullable field clears it. There is no owner field: ownership is
    fixed at creation.
    """

    name: str = UNSET
    description: str | None = UNSET
    price: Decimal = UNSET
    stock: int = UNSET
    category_id: str = UNSET
    image_url: str | None = UNSET

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductPatch":
        """Build a patch from the fields a client actually sent."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def changes(self) -> dict[str, Any]:
        """Fields to write, keyed by column name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


# ============================================================================
# Results
# ============================================================================


@dataclass
class CreateProductResult:
    """Outcome of creating a product.

    ``message`` is the only place the outcome of the image step is
    reported; the product exists either way.
    """

    product: Product
    message: str
    image_url: str | None = None


@dataclass
class ProductPage:
    """One page of a product listing.

    Attributes:
        products: Products on this page.
        total: Products matching the filter across all pages.
        page: Current page.
        limit: Items per page.
        message: Informational note when the page is empty.
    """

    products: list[Product]
    total: int
    page: int
    limit: int
    message: str | None = None

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return math.ceil(self.total / self.limit)


@dataclass
class SearchResult:
    """Products matching a free-text search."""

    products: list[Product] = field(default_factory=list)
    message: str | None = None


@dataclass
class ImageUploadResult:
    """Outcome of attaching an image to an existing product."""

    message: str
    image_url: str
    product: Product


# ============================================================================
# Guards
# ============================================================================


def ensure_owner(product: Product, requester_id: str, action: str = "modify") -> None:
    """Allow only the product owner through.

    Args:
        product: Product being changed.
        requester_id: Authenticated user making the request.
        action: Verb phrase for the error message.

    Raises:
        ForbiddenError: If the requester does not own the product.
    """
    if product.owner_id != requester_id:
        logger.warning(
            "Ownership check failed",
            product_id=product.id,
            owner_id=product.owner_id,
            requester_id=requester_id,
            action=action,
        )
        raise ForbiddenError(
            f"You can only {action} your own products",
            details={"product_id": product.id},
        )


# ============================================================================
# Service
# ============================================================================


class ProductService:
    """Service for product operations.

    Every mutating operation loads the product first and runs
    ``ensure_owner`` before touching it.

    Example usage:
        async with async_session_factory() as session:
            service = ProductService(session, ProductImageStorage(get_blob_store()))

            result = await service.create(
                NewProduct(name="Phone", price=Decimal("200"), stock=5, category_id=cat_id),
                owner_id=user_id,
            )

            page = await service.find_all(build_product_filter(max_price=Decimal("300")))
    """

    def __init__(self, session: AsyncSession, images: ProductImageStorage) -> None:
        """Initialize service with database session and image storage.

        Args:
            session: Async SQLAlchemy session.
            images: Product image storage.
        """
        self.session = session
        self.images = images
        self.repository = ProductRepository(session)
        self.categories = CategoryRepository(session)

    async def create(
        self,
        data: NewProduct,
        owner_id: str,
        image: ImageUpload | None = None,
    ) -> CreateProductResult:
        """Create a product, then attach an uploaded image if one was sent.

        The product row is committed before the image is uploaded. An
        image failure is logged and reported in the message; it never
        undoes the product.

        Args:
            data: Product fields.
            owner_id: Authenticated creator.
            image: Optional image file. Takes precedence over
                ``data.image_url`` when the upload succeeds.

        Returns:
            The created product and a message describing the outcome.

        Raises:
            CategoryNotFoundError: If the category does not exist. The
                error lists the valid categories.
            UnauthorizedError: If the owner account no longer exists.
        """
        if await self.session.get(UserModel, owner_id) is None:
            raise UnauthorizedError("User not found", details={"user_id": owner_id})

        if not await self.categories.exists(data.category_id):
            available = await self.categories.list_choices()
            raise CategoryNotFoundError(data.category_id, available=available)

        # Step 1: the product row. Durable before any image work starts.
        product = await self.repository.save(
            Product(
                name=data.name,
                description=data.description,
                price=data.price,
                stock=data.stock,
                category_id=data.category_id,
                owner_id=owner_id,
                image_url=data.image_url,
            )
        )
        await self.session.commit()

        logger.info(
            "Product created",
            product_id=product.id,
            category_id=product.category_id,
            owner_id=owner_id,
        )

        # Step 2: best effort. No compensation for step 1 on failure.
        message = PRODUCT_CREATED
        if image is not None:
            message = await self._attach_created_image(product, image)

        product = await self.repository.get_by_id(product.id)
        return CreateProductResult(
            product=product,
            message=message,
            image_url=product.image_url,
        )

    async def _attach_created_image(self, product: Product, image: ImageUpload) -> str:
        """Upload the image of a just-created product.

        Returns:
            Message describing the outcome.
        """
        try:
            stored = await self.images.upload(image, product.id, product.owner_id)
        except (BadRequestError, BlobStoreError) as e:
            logger.warning(
                "Image upload failed after product creation",
                product_id=product.id,
                error=str(e),
            )
            return f"{PRODUCT_CREATED}, but image upload failed: {e}"

        await self.repository.update(product, {"image_url": stored.url})
        await self.session.commit()
        return PRODUCT_CREATED_WITH_IMAGE

    async def find_all(self, filters: ProductFilter) -> ProductPage:
        """List products matching a filter.

        Args:
            filters: Normalized filter from ``build_product_filter``.

        Returns:
            Page of products. An empty page carries a message but is
            not an error.
        """
        products, total = await self.repository.find_many(filters)

        logger.debug(
            "Products listed",
            total=total,
            page=filters.page,
            limit=filters.limit,
            category_id=filters.category_id,
            price_filtered=filters.has_price_range,
            search=filters.search,
        )

        return ProductPage(
            products=products,
            total=total,
            page=filters.page,
            limit=filters.limit,
            message=NO_PRODUCTS_FOUND if not products else None,
        )

    async def find_one(self, product_id: str) -> Product:
        """Get a product by ID.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        return await self.repository.get_by_id(product_id)

    async def search(self, term: str | None) -> SearchResult:
        """Search products by name or description.

        Args:
            term: Free-text term. Blank terms match nothing.

        Returns:
            Matching products, most recent first.
        """
        term = normalize_search(term)
        products = list(await self.repository.search(term)) if term else []

        return SearchResult(
            products=products,
            message=NO_SEARCH_MATCHES if not products else None,
        )

    async def update(
        self,
        product_id: str,
        patch: ProductPatch,
        requester_id: str,
    ) -> Product:
        """Apply a partial update to a product the requester owns.

        Args:
            product_id: Product to change.
            patch: Fields to write.
            requester_id: Authenticated user.

        Returns:
            The updated product.

        Raises:
            ProductNotFoundError: If the product does not exist.
            ForbiddenError: If the requester is not the owner.
            CategoryNotFoundError: If the patch moves the product to a
                category that does not exist.
        """
        product = await self.repository.get_by_id(product_id)
        ensure_owner(product, requester_id, "update")

        changes = patch.changes()
        new_category_id = changes.get("category_id")
        if new_category_id is not None and new_category_id != product.category_id:
            if not await self.categories.exists(new_category_id):
                raise CategoryNotFoundError(new_category_id)

        if not changes:
            return product

        product = await self.repository.update(product, changes)
        logger.info("Product updated", product_id=product_id, fields=sorted(changes))
        return product

    async def remove(self, product_id: str, requester_id: str) -> None:
        """Delete a product the requester owns.

        Stored images are cleaned up first on a best-effort basis; a
        storage failure is logged and the product is deleted anyway.

        Raises:
            ProductNotFoundError: If the product does not exist.
            ForbiddenError: If the requester is not the owner.
        """
        product = await self.repository.get_by_id(product_id)
        ensure_owner(product, requester_id, "delete")

        if product.image_url:
            try:
                await self.images.delete_all(product.id, product.owner_id)
            except BlobStoreError as e:
                logger.warning(
                    "Failed to delete product images",
                    product_id=product.id,
                    error=str(e),
                )

        await self.repository.delete(product.id)
        logger.info("Product deleted", product_id=product_id)

    async def upload_image(
        self,
        product_id: str,
        image: ImageUpload | None,
        requester_id: str,
    ) -> ImageUploadResult:
        """Upload an image for a product the requester owns.

        Unlike ``create``, any upload failure fails the call.

        Raises:
            ProductNotFoundError: If the product does not exist.
            ForbiddenError: If the requester is not the owner.
            BadRequestError: If the file is missing, too large or of a
                disallowed type.
            BlobStoreError: If the store rejects the upload.
        """
        product = await self.repository.get_by_id(product_id)
        ensure_owner(product, requester_id, "upload images to")

        stored = await self.images.upload(image, product.id, product.owner_id)
        product = await self.repository.update(product, {"image_url": stored.url})

        return ImageUploadResult(
            message="Image uploaded successfully",
            image_url=stored.url,
            product=product,
        )

    async def delete_image(self, product_id: str, requester_id: str) -> str:
        """Remove the stored images of a product and clear its image URL.

        Returns:
            Confirmation message.

        Raises:
            ProductNotFoundError: If the product does not exist.
            ForbiddenError: If the requester is not the owner.
            BadRequestError: If the product has no image.
            BlobStoreError: If the store fails to delete.
        """
        product = await self.repository.get_by_id(product_id)
        ensure_owner(product, requester_id, "delete images of")

        if not product.image_url:
            raise BadRequestError(
                "Product has no image to delete",
                details={"product_id": product_id},
            )

        await self.images.delete_all(product.id, product.owner_id)
        await self.repository.update(product, {"image_url": None})

        logger.info("Product image removed", product_id=product_id)
        return "Image deleted successfully"
