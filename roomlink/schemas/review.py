"""Review schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from roomlink.schemas.common import BaseCreateSchema, BaseResponseSchema, BaseSchema, BaseUpdateSchema


class ReviewCreate(BaseCreateSchema):
    hostel_id: str
    booking_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    cleanliness: Optional[int] = Field(None, ge=1, le=5)
    comfort: Optional[int] = Field(None, ge=1, le=5)
    staff: Optional[int] = Field(None, ge=1, le=5)
    value: Optional[int] = Field(None, ge=1, le=5)
    location: Optional[int] = Field(None, ge=1, le=5)


class ReviewUpdate(BaseUpdateSchema):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    cleanliness: Optional[int] = Field(None, ge=1, le=5)
    comfort: Optional[int] = Field(None, ge=1, le=5)
    staff: Optional[int] = Field(None, ge=1, le=5)
    value: Optional[int] = Field(None, ge=1, le=5)
    location: Optional[int] = Field(None, ge=1, le=5)


class ReviewReply(BaseSchema):
    text: str = Field(..., min_length=1, max_length=500)


class ReviewResponse(BaseResponseSchema):
    user_id: str
    hostel_id: str
    booking_id: str
    rating: int
    comment: Optional[str] = None
    cleanliness: Optional[int] = None
    comfort: Optional[int] = None
    staff: Optional[int] = None
    value: Optional[int] = None
    location: Optional[int] = None
    owner_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    helpful_count: int
