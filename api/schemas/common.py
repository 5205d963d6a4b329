"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model exposing camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(default=50, ge=1, le=200, description="Items per page")

    @property
    def offset(self) -> int:
        """Calculate offset from page and page_size."""
        return (self.page - 1) * self.page_size


class PaginatedResponse(CamelModel, Generic[T]):
    """Paginated response wrapper."""

    items: list[T] = Field(description="List of items for this page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    page: int = Field(ge=1, description="Current page number")
    page_size: int = Field(ge=1, description="Items per page")
    total_pages: int = Field(ge=0, description="Total number of pages")

    @classmethod
    def create(
        cls,
        items: list[T],
        total: int,
        pagination: PaginationParams,
    ) -> "PaginatedResponse[T]":
        """Create a paginated response."""
        total_pages = (total + pagination.page_size - 1) // pagination.page_size
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=total_pages,
        )


class TimestampMixin(CamelModel):
    """Mixin for timestamp fields."""

    created_at: Optional[datetime] = Field(None, description="Timestamp when the resource was created")
    updated_at: Optional[datetime] = Field(None, description="Timestamp when the resource was last updated")


class ErrorBody(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str
    path: str
    method: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorBody


def normalize_enum_name(value: Any) -> Any:
    """Accept ``coffee-chat`` / ``coffee_chat`` / ``COFFEE_CHAT`` alike. Enum members pass through."""
    if isinstance(value, str) and not isinstance(value, PyEnum):
        return value.strip().upper().replace("-", "_")
    return value
