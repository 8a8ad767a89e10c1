"""Guest complaints and their append-only handling notes."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.db.base import Base
from roomlink.models.base import BaseModel, UUIDMixin, enum_column
from roomlink.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from roomlink.utils.datetime_utils import utcnow


class Complaint(BaseModel):
    __tablename__ = "complaints"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hostel_id: Mapped[str] = mapped_column(
        ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id: Mapped[Optional[str]] = mapped_column(ForeignKey("bookings.id", ondelete="SET NULL"))

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False)
    category: Mapped[ComplaintCategory] = mapped_column(enum_column(ComplaintCategory), nullable=False)
    priority: Mapped[ComplaintPriority] = mapped_column(
        enum_column(ComplaintPriority), nullable=False, default=ComplaintPriority.MEDIUM
    )
    status: Mapped[ComplaintStatus] = mapped_column(
        enum_column(ComplaintStatus), nullable=False, default=ComplaintStatus.OPEN, index=True
    )
    attachments: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    handled_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), index=True)
    is_escalated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    resolution_note: Mapped[Optional[str]] = mapped_column(Text)
    resolution_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    satisfaction_rating: Mapped[Optional[int]] = mapped_column(Integer)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))


class ComplaintNote(UUIDMixin, Base):
    """Internal note on a complaint. Rows are only ever inserted."""

    __tablename__ = "complaint_notes"

    complaint_id: Mapped[str] = mapped_column(
        ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    added_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
