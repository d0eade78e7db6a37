"""Product API endpoints.

Provides endpoints for listing, searching and mutating products and
for attaching images to them. Every endpoint requires a bearer token;
mutations are limited to the product owner.
"""

from decimal import Decimal
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile as StarletteUploadFile

from app.api.categories import details_to_response
from app.api.middleware import get_current_user_id
from app.api.schemas import (
    CategoryResponse,
    ErrorResponse,
    ImageUploadResponse,
    MessageResponse,
    ProductCreateRequest,
    ProductCreateResponse,
    ProductListResponse,
    ProductResponse,
    ProductSearchResponse,
    ProductUpdateRequest,
)
from app.catalog.categories import CategoryService
from app.catalog.filters import build_product_filter
from app.catalog.images import ImageUpload, ProductImageStorage
from app.catalog.models import Product
from app.catalog.service import NewProduct, ProductPatch, ProductService
from app.infrastructure.blob_store import BlobStore, get_blob_store
from app.infrastructure.config import settings
from app.infrastructure.database import get_session

router = APIRouter(prefix="/api/products", tags=["Products"])

CurrentUserId = Annotated[str, Depends(get_current_user_id)]

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# ============================================================================
# Dependencies
# ============================================================================


def get_image_storage(
    store: Annotated[BlobStore, Depends(get_blob_store)],
) -> ProductImageStorage:
    """Get product image storage on top of the configured blob store."""
    return ProductImageStorage(store)


def get_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    images: Annotated[ProductImageStorage, Depends(get_image_storage)],
) -> ProductService:
    """Get product service bound to the request session."""
    return ProductService(session, images)


def get_category_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CategoryService:
    """Get category service bound to the request session."""
    return CategoryService(session)


# ============================================================================
# Converters
# ============================================================================


def product_to_response(product: Product) -> ProductResponse:
    """Convert Product model to response schema."""
    return ProductResponse.model_validate(product)


async def read_image(upload: StarletteUploadFile | None) -> ImageUpload | None:
    """Read an uploaded file part into an ``ImageUpload``.

    Reads at most one byte past the size limit so an oversized file is
    rejected without being buffered whole.
    """
    if upload is None or not upload.filename:
        return None

    data = await upload.read(settings.max_image_size_bytes + 1)
    return ImageUpload(
        data=data,
        content_type=upload.content_type,
        filename=upload.filename,
    )


def _body_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {**error, "loc": ("body", *error["loc"])}
        for error in exc.errors(include_url=False)
    ]


async def read_create_request(
    request: Request,
) -> tuple[ProductCreateRequest, ImageUpload | None]:
    """Parse a create request sent as JSON or as form data.

    Raises:
        RequestValidationError: If the body is not valid.
    """
    content_type = request.headers.get("content-type", "")
    image = None

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        raw: Any = {
            key: value for key, value in form.items() if isinstance(value, str)
        }
        part = form.get("image")
        if isinstance(part, StarletteUploadFile):
            image = await read_image(part)
    else:
        try:
            raw = await request.json()
        except ValueError as e:
            raise RequestValidationError(
                [
                    {
                        "type": "json_invalid",
                        "loc": ("body",),
                        "msg": "Request body must be valid JSON",
                        "input": None,
                    }
                ]
            ) from e

    try:
        body = ProductCreateRequest.model_validate(raw)
    except ValidationError as e:
        raise RequestValidationError(_body_errors(e)) from e

    return body, image


# ============================================================================
# Endpoints
# ============================================================================


_CREATE_BODY_SCHEMA = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": ProductCreateRequest.model_json_schema()
            },
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "required": ["name", "price", "stock", "categoryId"],
                    "properties": {
                        "name": {"type": "string"},
                        "description": {"type": "string"},
                        "price": {"type": "number"},
                        "stock": {"type": "integer"},
                        "categoryId": {"type": "string"},
                        "imageUrl": {"type": "string"},
                        "image": {"type": "string", "format": "binary"},
                    },
                }
            },
        },
    }
}


@router.post(
    "",
    response_model=ProductCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {
            "model": ErrorResponse,
            "description": "Category not found. Please create a category first.",
        },
    },
    openapi_extra=_CREATE_BODY_SCHEMA,
    summary="Create product",
    description=(
        "Create a product in an existing category. Send JSON, or multipart "
        "form data with an optional `image` file. The product is kept even "
        "if the image upload fails; the message reports the outcome."
    ),
)
async def create_product(
    request: Request,
    service: Annotated[ProductService, Depends(get_service)],
    user_id: CurrentUserId,
) -> ProductCreateResponse:
    """Create a new product owned by the caller.

    Args:
        request: Raw request, parsed as JSON or multipart.
        service: Product service.
        user_id: Authenticated user.

    Returns:
        Created product, its image URL and an outcome message.
    """
    body, image = await read_create_request(request)

    result = await service.create(
        NewProduct(
            name=body.name,
            description=body.description,
            price=body.price,
            stock=body.stock,
            category_id=body.category_id,
            image_url=body.image_url,
        ),
        owner_id=user_id,
        image=image,
    )

    return ProductCreateResponse(
        product=product_to_response(result.product),
        image_url=result.image_url,
        message=result.message,
    )


@router.get(
    "",
    response_model=ProductListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List products",
    description=(
        "List products with optional category, price range and text filters. "
        "Out-of-range page and limit values are clamped."
    ),
)
async def list_products(
    service: Annotated[ProductService, Depends(get_service)],
    category_id: Annotated[str | None, Query(alias="categoryId")] = None,
    min_price: Annotated[Decimal | None, Query(alias="minPrice")] = None,
    max_price: Annotated[Decimal | None, Query(alias="maxPrice")] = None,
    search: Annotated[str | None, Query(description="Text in name or description")] = None,
    page: Annotated[int | None, Query(description="Page number (1-indexed)")] = None,
    limit: Annotated[int | None, Query(description="Items per page (max 100)")] = None,
) -> ProductListResponse:
    """List products matching the filters, most recent first."""
    result = await service.find_all(
        build_product_filter(
            category_id=category_id,
            min_price=min_price,
            max_price=max_price,
            search=search,
            page=page,
            limit=limit,
        )
    )

    return ProductListResponse(
        products=[product_to_response(p) for p in result.products],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        message=result.message,
    )


@router.get(
    "/search",
    response_model=ProductSearchResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Search products",
    description="Case-insensitive substring search over product name and description.",
)
async def search_products(
    query: Annotated[str, Query(description="Search term")],
    service: Annotated[ProductService, Depends(get_service)],
) -> ProductSearchResponse:
    """Search products by name or description."""
    result = await service.search(query)
    return ProductSearchResponse(
        products=[product_to_response(p) for p in result.products],
        message=result.message,
    )


@router.get(
    "/categories",
    response_model=list[CategoryResponse],
    responses={401: {"model": ErrorResponse}},
    summary="Get available categories for product creation",
)
async def list_product_categories(
    service: Annotated[CategoryService, Depends(get_category_service)],
) -> list[CategoryResponse]:
    """List the categories a product can be created in."""
    return [details_to_response(d) for d in await service.list_all()]


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get product",
)
async def get_product(
    product_id: str,
    service: Annotated[ProductService, Depends(get_service)],
) -> ProductResponse:
    """Get a product by ID."""
    return product_to_response(await service.find_one(product_id))


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "Forbidden - not your product"},
        404: {"model": ErrorResponse},
    },
    summary="Update product",
    description="Change any subset of the product fields. Only the owner may update.",
)
async def update_product(
    product_id: str,
    body: ProductUpdateRequest,
    service: Annotated[ProductService, Depends(get_service)],
    user_id: CurrentUserId,
) -> ProductResponse:
    """Apply a partial update to a product."""
    patch = ProductPatch.from_dict(body.model_dump(exclude_unset=True))
    product = await service.update(product_id, patch, requester_id=user_id)
    return product_to_response(product)


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "Forbidden - not your product"},
        404: {"model": ErrorResponse},
    },
    summary="Delete product",
)
async def delete_product(
    product_id: str,
    service: Annotated[ProductService, Depends(get_service)],
    user_id: CurrentUserId,
) -> MessageResponse:
    """Delete a product and, best effort, its stored images."""
    await service.remove(product_id, requester_id=user_id)
    return MessageResponse(message="Product deleted successfully")


@router.post(
    "/{product_id}/upload-image",
    response_model=ImageUploadResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "Forbidden - not your product"},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse, "description": "Image storage failed"},
    },
    summary="Upload product image",
    description="Upload a JPEG, PNG, WebP or GIF image of at most 5MB.",
)
async def upload_product_image(
    product_id: str,
    service: Annotated[ProductService, Depends(get_service)],
    user_id: CurrentUserId,
    image: Annotated[UploadFile | None, File(description="Image file")] = None,
) -> ImageUploadResponse:
    """Upload an image and set it as the product image."""
    result = await service.upload_image(
        product_id, await read_image(image), requester_id=user_id
    )
    return ImageUploadResponse(
        message=result.message,
        image_url=result.image_url,
        product=product_to_response(result.product),
    )


@router.delete(
    "/{product_id}/image",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "Forbidden - not your product"},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse, "description": "Image storage failed"},
    },
    summary="Delete product image",
)
async def delete_product_image(
    product_id: str,
    service: Annotated[ProductService, Depends(get_service)],
    user_id: CurrentUserId,
) -> MessageResponse:
    """Remove the stored images of a product."""
    message = await service.delete_image(product_id, requester_id=user_id)
    return MessageResponse(message=message)
