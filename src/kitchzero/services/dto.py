"""Data Transfer Objects for service layer.

Type-safe data structures for pagination, shared by every list operation.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, List

from kitchzero.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


@dataclass
class PaginationParams:
    """Pagination parameters for list operations.

    Attributes:
        page: Page number (1-indexed, default 1)
        per_page: Items per page (default 20, max 1000)

    Examples:
        params = PaginationParams(page=2, per_page=25)
        result = get_inventory_items("t1", "b1", pagination=params)

    Raises:
        ValueError: If page < 1, per_page < 1, or per_page > 1000
    """

    page: int = 1
    per_page: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.per_page < 1:
            raise ValueError("per_page must be >= 1")
        if self.per_page > MAX_PAGE_SIZE:
            raise ValueError(f"per_page must be <= {MAX_PAGE_SIZE}")

    def offset(self) -> int:
        """Calculate SQL OFFSET value.

        Examples:
            >>> PaginationParams(page=1, per_page=20).offset()
            0
            >>> PaginationParams(page=3, per_page=25).offset()
            50
        """
        return (self.page - 1) * self.per_page


@dataclass
class PaginatedResult(Generic[T]):
    """Generic paginated result container.

    Attributes:
        items: List of items for this page
        total: Total number of items across all pages
        page: Current page number (1-indexed)
        per_page: Items per page

    Properties:
        pages: Total number of pages (minimum 1)
        has_next: Whether there's a next page
        has_prev: Whether there's a previous page
    """

    items: List[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        """Total pages (minimum 1, even for empty results)."""
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def paginate(query, pagination: PaginationParams, serialize=None) -> PaginatedResult:
    """Apply ``pagination`` to a SQLAlchemy query and wrap the page.

    Args:
        query: Ordered SQLAlchemy query
        pagination: Page to fetch
        serialize: Optional callable applied to each row (e.g. ``to_dict``)
    """
    total = query.order_by(None).count()
    rows = query.offset(pagination.offset()).limit(pagination.per_page).all()
    items = [serialize(row) for row in rows] if serialize else rows
    return PaginatedResult(items=items, total=total, page=pagination.page, per_page=pagination.per_page)
