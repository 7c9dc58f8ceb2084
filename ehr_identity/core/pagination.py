"""
Core pagination utilities for API endpoints.
"""
import math
from typing import Generic, List, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class PageParams:
    """
    Page parameters for pagination.

    Attributes:
        page: Page number (1-indexed)
        limit: Number of items per page
    """
    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(10, ge=1, le=100, description="Items per page"),
    ):
        self.page = page
        self.limit = limit
        self.offset = (page - 1) * limit


class PageResponse(BaseModel, Generic[T]):
    """
    Paginated response model.

    Attributes:
        items: List of items for the current page
        total: Total number of items
        page: Current page number
        limit: Number of items per page
        pages: Total number of pages
        has_next: Whether there is a next page
        has_prev: Whether there is a previous page
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[T]
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool


def build_page(items: List[T], total: int, page_params: PageParams) -> PageResponse[T]:
    """
    Wrap one page of already-converted items with paging metadata.

    Args:
        items: Items on the requested page
        total: Total matching items
        page_params: Pagination parameters

    Returns:
        PageResponse: Paginated response
    """
    pages = math.ceil(total / page_params.limit) if total > 0 else 0
    return PageResponse(
        items=items,
        total=total,
        page=page_params.page,
        limit=page_params.limit,
        pages=pages,
        has_next=page_params.page < pages,
        has_prev=page_params.page > 1,
    )
