"""Product image storage.

Validates uploaded image files and stores them in the blob store under
a ``<product_id>/<owner_id>/`` namespace, so every image of a product
can be listed and removed together.
"""

from dataclasses import dataclass
from uuid import uuid4

import structlog

from app.domain.exceptions import BadRequestError
from app.infrastructure.blob_store import BlobStore
from app.infrastructure.config import settings

logger = structlog.get_logger()

EXTENSIONS_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass
class ImageUpload:
    """An image file received from a client.

    Attributes:
        data: File bytes.
        content_type: MIME type declared by the client.
        filename: Original filename, if any.
    """

    data: bytes
    content_type: str | None
    filename: str | None = None

    @property
    def size(self) -> int:
        """File size in bytes."""
        return len(self.data)


@dataclass
class StoredImage:
    """Result of storing an image."""

    url: str
    key: str


def image_prefix(product_id: str, owner_id: str) -> str:
    """Folder holding every image of a product."""
    return f"{product_id}/{owner_id}"


class ProductImageStorage:
    """Stores product images in a blob store.

    Example usage:
        storage = ProductImageStorage(get_blob_store())
        stored = await storage.upload(upload, product.id, product.owner_id)
        product.image_url = stored.url
    """

    def __init__(
        self,
        store: BlobStore,
        max_size_bytes: int | None = None,
        allowed_types: list[str] | None = None,
    ) -> None:
        """Initialize image storage.

        Args:
            store: Underlying blob store.
            max_size_bytes: Largest accepted file. Defaults to settings.
            allowed_types: Accepted MIME types. Defaults to settings.
        """
        self.store = store
        self.max_size_bytes = max_size_bytes or settings.max_image_size_bytes
        self.allowed_types = allowed_types or settings.allowed_image_types

    def validate(self, upload: ImageUpload | None) -> ImageUpload:
        """Check presence, size and type of an upload.

        Returns:
            The upload, once it passed every check.

        Raises:
            BadRequestError: If the file is missing, empty, too large
                or of a type not on the whitelist.
        """
        if upload is None or upload.size == 0:
            raise BadRequestError("No image file provided")

        if upload.size > self.max_size_bytes:
            max_mb = self.max_size_bytes / (1024 * 1024)
            raise BadRequestError(
                f"File size too large. Maximum size is {max_mb:g}MB",
                details={"size": upload.size, "max_size": self.max_size_bytes},
            )

        if upload.content_type not in self.allowed_types:
            raise BadRequestError(
                f"Invalid file type. Allowed types: {', '.join(self.allowed_types)}",
                details={"content_type": upload.content_type},
            )

        return upload

    def build_key(self, upload: ImageUpload, product_id: str, owner_id: str) -> str:
        """Build a unique object key for an upload."""
        return f"{image_prefix(product_id, owner_id)}/{uuid4()}.{self._extension(upload)}"

    async def upload(
        self,
        upload: ImageUpload | None,
        product_id: str,
        owner_id: str,
    ) -> StoredImage:
        """Validate and store an image.

        Args:
            upload: Image received from the client.
            product_id: Product the image belongs to.
            owner_id: Owner of the product.

        Returns:
            Public URL and key of the stored object.

        Raises:
            BadRequestError: If validation fails.
            BlobStoreError: If the store rejects the upload.
        """
        upload = self.validate(upload)

        key = self.build_key(upload, product_id, owner_id)
        url = await self.store.upload(key, upload.data, upload.content_type or "")

        logger.info(
            "Product image stored",
            product_id=product_id,
            key=key,
            size=upload.size,
        )
        return StoredImage(url=url, key=key)

    async def delete_all(self, product_id: str, owner_id: str) -> int:
        """Delete every stored image of a product.

        Returns:
            Number of objects removed.

        Raises:
            BlobStoreError: If listing or deletion fails.
        """
        keys = await self.store.list_keys(image_prefix(product_id, owner_id))
        if keys:
            await self.store.delete(keys)

        logger.info("Product images deleted", product_id=product_id, count=len(keys))
        return len(keys)

    @staticmethod
    def _extension(upload: ImageUpload) -> str:
        if upload.filename and "." in upload.filename:
            ext = upload.filename.rsplit(".", 1)[1].lower()
            if ext.isalnum():
                return ext
        return EXTENSIONS_BY_TYPE.get(upload.content_type or "", "jpg")
