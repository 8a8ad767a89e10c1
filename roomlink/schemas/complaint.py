"""Complaint schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from roomlink.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from roomlink.schemas.common import BaseCreateSchema, BaseResponseSchema, BaseSchema, Money


class ComplaintCreate(BaseCreateSchema):
    hostel_id: str
    booking_id: Optional[str] = None
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: ComplaintCategory
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    attachments: List[str] = Field(default_factory=list, max_length=10)


class ComplaintStatusUpdate(BaseSchema):
    status: ComplaintStatus


class ComplaintResolve(BaseSchema):
    resolution_note: str = Field(..., min_length=3, max_length=2000)
    satisfaction_rating: Optional[int] = Field(None, ge=1, le=5)
    refund_amount: Optional[Decimal] = Field(None, ge=0)


class ComplaintEscalate(BaseSchema):
    priority: ComplaintPriority
    reason: Optional[str] = Field(None, max_length=1000)


class ComplaintReassign(BaseSchema):
    staff_id: str


class ComplaintNoteCreate(BaseSchema):
    note: str = Field(..., min_length=1, max_length=2000)


class ComplaintNoteResponse(BaseSchema):
    id: str
    note: str
    added_by: str
    added_at: datetime


class ComplaintResponse(BaseResponseSchema):
    user_id: str
    hostel_id: str
    booking_id: Optional[str] = None
    title: str
    description: str
    category: ComplaintCategory
    priority: ComplaintPriority
    status: ComplaintStatus
    attachments: List[str]
    handled_by: Optional[str] = None
    is_escalated: bool
    escalated_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    resolution_date: Optional[datetime] = None
    satisfaction_rating: Optional[int] = None
    refund_amount: Optional[Money] = None


class ComplaintDetailResponse(ComplaintResponse):
    notes: List[ComplaintNoteResponse] = Field(default_factory=list)
