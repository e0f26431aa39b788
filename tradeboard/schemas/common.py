"""
Common schemas used across multiple endpoints.
"""

from decimal import Decimal
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import BaseModel, PlainSerializer

from tradeboard.services.pnl import to_money

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


# Exact Decimal internally, rounded to cents and emitted as a JSON number
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(to_money(v)), return_type=float, when_used="json"),
]


class MessageResponse(BaseModel):
    """
    Simple message response for operations without data payload.
    """
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    """
    Standard error response format.
    """
    error: str
    message: str
    details: dict | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response wrapper.
    """
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def normalize_paging(page: Optional[int], page_size: Optional[int]) -> tuple[int, int]:
    """page >= 1 and page_size clamped to 1..100 (default 10)."""
    page = max(1, page or 1)
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))
    return page, page_size
