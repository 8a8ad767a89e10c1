"""
Base schema classes, shared field types and response envelopes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from roomlink.utils.datetime_utils import to_naive_utc

T = TypeVar("T")

# Monetary values are computed as Decimal and rendered as JSON numbers.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# Accepts dates or aware/naive datetimes; stored as naive UTC.
UTCDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]


class BaseSchema(BaseModel):
    """Common Pydantic configuration for every request and response schema."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
        str_strip_whitespace=True,
    )


class BaseCreateSchema(BaseSchema):
    model_config = ConfigDict(extra="ignore")


class BaseUpdateSchema(BaseSchema):
    """Partial update: every field optional, unset fields are left alone."""

    model_config = ConfigDict(extra="ignore")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BaseResponseSchema(BaseSchema):
    id: str = Field(..., description="Unique identifier")
    created_at: datetime
    updated_at: datetime


class PaginationMeta(BaseSchema):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool


class SuccessResponse(BaseSchema, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None

    @classmethod
    def create(cls, data: Any = None, message: Optional[str] = None) -> "SuccessResponse":
        return cls(success=True, message=message, data=data)


class PaginatedResponse(BaseSchema, Generic[T]):
    success: bool = True
    data: List[T]
    pagination: PaginationMeta


class MessageResponse(BaseSchema):
    success: bool = True
    message: str
