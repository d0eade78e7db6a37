"""Product filter building.

Normalizes raw list-query parameters into a ``ProductFilter`` that the
repository turns into SQL. Every input is optional; nothing here raises.
"""

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Largest row offset a signed 64-bit OFFSET accepts
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class ProductFilter:
    """Filter and pagination window for a product listing.

    Attributes:
        category_id: Exact category match.
        min_price: Inclusive lower price bound.
        max_price: Inclusive upper price bound.
        search: Case-insensitive substring over name or description.
        page: Page number (1-indexed).
        limit: Items per page.
    """

    category_id: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    search: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        """Calculate offset from page number."""
        return (self.page - 1) * self.limit

    @property
    def has_price_range(self) -> bool:
        """Whether any price bound is set."""
        return self.min_price is not None or self.max_price is not None


def normalize_search(term: str | None) -> str | None:
    """Trim a search term, mapping blank input to None."""
    if term is None:
        return None
    term = term.strip()
    return term or None


def build_product_filter(
    category_id: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> ProductFilter:
    """Build a normalized product filter.

    Page is clamped to at least 1, and to at most the last page whose
    offset still fits ``MAX_OFFSET``. Limit is clamped to
    ``[1, MAX_LIMIT]``. An inverted price range is kept as given and
    simply matches nothing.

    Args:
        category_id: Category to match exactly.
        min_price: Minimum price, inclusive.
        max_price: Maximum price, inclusive.
        search: Free-text search term.
        page: Requested page.
        limit: Requested page size.

    Returns:
        Normalized filter.
    """
    if page is None or page < 1:
        page = DEFAULT_PAGE

    if limit is None:
        limit = DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))
    page = min(page, MAX_OFFSET // limit)

    return ProductFilter(
        category_id=category_id or None,
        min_price=min_price,
        max_price=max_price,
        search=normalize_search(search),
        page=page,
        limit=limit,
    )
