"""Product Catalog Service.

Provides product filtering, search, ownership-checked mutation and
product image storage, plus category management.
"""

from app.catalog.categories import CategoryDetails, CategoryService
from app.catalog.filters import ProductFilter, build_product_filter
from app.catalog.images import ImageUpload, ProductImageStorage, StoredImage
from app.catalog.models import Category, Product
from app.catalog.repository import CategoryRepository, ProductRepository
from app.catalog.service import (
    CreateProductResult,
    ImageUploadResult,
    NewProduct,
    ProductPage,
    ProductPatch,
    ProductService,
    SearchResult,
    ensure_owner,
)

__all__ = [
    # Models
    "Category",
    "Product",
    # Filters
    "ProductFilter",
    "build_product_filter",
    # Images
    "ImageUpload",
    "ProductImageStorage",
    "StoredImage",
    # Repository
    "CategoryRepository",
    "ProductRepository",
    # Service
    "CreateProductResult",
    "ImageUploadResult",
    "NewProduct",
    "ProductPage",
    "ProductPatch",
    "ProductService",
    "SearchResult",
    "ensure_owner",
    # Categories
    "CategoryDetails",
    "CategoryService",
]
