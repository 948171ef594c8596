"""Pagination request and page result shared by every listing operation."""

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Pagination:
    """Pagination parameters.

    Attributes:
        page: Page number (1-indexed).
        size: Number of items per page.
        search: Optional case-insensitive substring filter.
    """

    page: int = 1
    size: int = 20
    search: str | None = None

    def __post_init__(self) -> None:
        """Validate pagination data after initialization."""
        if self.page < 1:
            raise ValueError("Page must be at least 1")
        if self.size < 1:
            raise ValueError("Page size must be at least 1")
        if self.search is not None:
            self.search = self.search.strip() or None

    @property
    def offset(self) -> int:
        """Number of rows to skip for this page."""
        return (self.page - 1) * self.size


@dataclass
class Page(Generic[T]):
    """One page of results plus the total match count."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    size: int = 20

    @property
    def total_pages(self) -> int:
        """Total number of pages for ``total`` items."""
        return math.ceil(self.total / self.size) if self.size else 0
