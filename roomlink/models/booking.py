"""
Booking model.

One reservation of ``number_of_rooms`` units of a room for a date range.
The pricing breakdown is frozen at booking time; cancellation, check-in and
check-out details are recorded as flat columns on the same row.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.models.base import BaseModel, enum_column
from roomlink.models.enums import BookingPaymentStatus, BookingStatus, CancelledBy

ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
CANCELLABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
EDITABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
REVIEWABLE_STATUSES = (BookingStatus.CHECKED_OUT, BookingStatus.COMPLETED)


class Booking(BaseModel):
    __tablename__ = "bookings"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    room_id: Mapped[str] = mapped_column(
        ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False
    )
    hostel_id: Mapped[str] = mapped_column(
        ForeignKey("hostels.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    check_in_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    number_of_guests: Mapped[int] = mapped_column(Integer, nullable=False)
    number_of_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # {name, email, phone}
    guest_details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    special_requests: Mapped[Optional[str]] = mapped_column(Text)

    # Pricing breakdown
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    service_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        enum_column(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True
    )

    # Payment sub-state
    payment_status: Mapped[BookingPaymentStatus] = mapped_column(
        enum_column(BookingPaymentStatus), nullable=False, default=BookingPaymentStatus.PENDING
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Cancellation
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cancelled_by: Mapped[Optional[CancelledBy]] = mapped_column(enum_column(CancelledBy))
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(500))
    refund_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    refund_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Check-in inspection
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    checked_in_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"))
    document_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    room_key_issued: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    check_in_condition: Mapped[Optional[str]] = mapped_column(String(255))

    # Check-out inspection
    checked_out_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    checked_out_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"))
    room_key_returned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    check_out_condition: Mapped[Optional[str]] = mapped_column(String(255))
    damages: Mapped[Optional[str]] = mapped_column(Text)
    damage_charges: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_booking_dates_ordered"),
        CheckConstraint("number_of_guests >= 1", name="ck_booking_guests_positive"),
        CheckConstraint("number_of_rooms >= 1", name="ck_booking_rooms_positive"),
        Index("ix_bookings_room_range", "room_id", "status", "check_in_date", "check_out_date"),
    )

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES
