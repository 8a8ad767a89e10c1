"""Booking request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, model_validator

from roomlink.models.enums import BookingPaymentStatus, BookingStatus, CancelledBy
from roomlink.schemas.common import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseSchema,
    BaseUpdateSchema,
    Money,
    UTCDateTime,
)


class GuestDetails(BaseSchema):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=7, max_length=20)


class BookingCreate(BaseCreateSchema):
    """
    New booking request.

    Date order is checked by the booking service so that the error carries
    the ``INVALID_DATE_RANGE`` code rather than a generic validation error.
    """

    room_id: str = Field(..., min_length=1, alias="room")
    check_in_date: UTCDateTime
    check_out_date: UTCDateTime
    number_of_guests: int = Field(..., ge=1, le=50)
    number_of_rooms: int = Field(1, ge=1, le=20)
    guest_details: GuestDetails
    special_requests: Optional[str] = Field(None, max_length=1000)


class BookingUpdate(BaseUpdateSchema):
    check_in_date: Optional[UTCDateTime] = None
    check_out_date: Optional[UTCDateTime] = None
    number_of_guests: Optional[int] = Field(None, ge=1, le=50)
    special_requests: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def dates_change_together(self) -> "BookingUpdate":
        if (self.check_in_date is None) != (self.check_out_date is None):
            raise ValueError("check_in_date and check_out_date must be updated together")
        return self


class BookingCancelRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class CheckInRequest(BaseSchema):
    document_verified: bool = False
    room_key_issued: bool = False
    room_condition: Optional[str] = Field(None, max_length=255)


class CheckOutRequest(BaseSchema):
    room_key_returned: bool = False
    room_condition: Optional[str] = Field(None, max_length=255)
    damages: Optional[str] = Field(None, max_length=2000)
    damage_charges: Money = Field(default=0, ge=0)


class PricingResponse(BaseSchema):
    nights: int
    price_per_night: Money
    subtotal: Money
    discount_percent: Money
    discount_amount: Money
    service_fee: Money
    tax: Money
    total: Money


class BookingResponse(BaseResponseSchema):
    user_id: str
    room_id: str
    hostel_id: str
    check_in_date: datetime
    check_out_date: datetime
    number_of_guests: int
    number_of_rooms: int
    guest_details: GuestDetails
    special_requests: Optional[str] = None

    nights: int
    price_per_night: Money
    subtotal: Money
    discount_percent: Money
    discount_amount: Money
    service_fee: Money
    tax: Money
    total_price: Money

    status: BookingStatus
    payment_status: BookingPaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_amount: Money

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[CancelledBy] = None
    cancel_reason: Optional[str] = None
    refund_eligible: bool
    refund_percentage: int

    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    document_verified: bool
    room_key_issued: bool
    check_in_condition: Optional[str] = None

    checked_out_at: Optional[datetime] = None
    checked_out_by: Optional[str] = None
    room_key_returned: bool
    check_out_condition: Optional[str] = None
    damages: Optional[str] = None
    damage_charges: Money


class AvailabilityResponse(BaseSchema):
    room_id: str
    check_in_date: datetime
    check_out_date: datetime
    total_units: int
    booked_units: int
    available_units: int
    is_available: bool
    pricing: Optional[PricingResponse] = None
