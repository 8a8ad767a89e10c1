"""Booking lifecycle endpoints."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from roomlink.api.deps import get_booking_service, get_current_principal, get_pagination
from roomlink.api.responses import attachment, ok, paginated
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Principal
from roomlink.models.enums import BookingStatus
from roomlink.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    CheckInRequest,
    CheckOutRequest,
)
from roomlink.schemas.common import PaginatedResponse, SuccessResponse
from roomlink.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=SuccessResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.create_booking(principal, payload)
    return ok(BookingResponse.model_validate(booking), "Booking created, awaiting payment")


@router.get("", response_model=PaginatedResponse[BookingResponse])
def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    hostel_id: Optional[str] = None,
    params: PaginationParams = Depends(get_pagination),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    result = service.list_bookings(principal, params, status=status_filter, hostel_id=hostel_id)
    return paginated(result, BookingResponse)


# Declared before "/{booking_id}" so "export" is not captured as an id.
@router.get("/export")
def export_bookings(
    fmt: str = Query("csv", alias="format"),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    return attachment(*service.export_bookings(principal, fmt))


@router.get("/{booking_id}", response_model=SuccessResponse[BookingResponse])
def get_booking(
    booking_id: str,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    return ok(BookingResponse.model_validate(service.get_booking(principal, booking_id)))


@router.put("/{booking_id}", response_model=SuccessResponse[BookingResponse])
def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_booking(principal, booking_id, payload)
    return ok(BookingResponse.model_validate(booking), "Booking updated")


@router.delete("/{booking_id}", response_model=SuccessResponse[BookingResponse])
def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancelRequest] = Body(None),
    reason: Optional[str] = Query(None, max_length=500),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking. The reason may come in the body or the query string."""
    cancel_reason = payload.reason if payload and payload.reason else reason
    booking = service.cancel_booking(principal, booking_id, cancel_reason)
    message = "Booking cancelled"
    if booking.refund_amount:
        message = f"Booking cancelled, {booking.refund_percentage}% refund due"
    return ok(BookingResponse.model_validate(booking), message)


@router.post("/{booking_id}/checkin", response_model=SuccessResponse[BookingResponse])
def check_in(
    booking_id: str,
    payload: Optional[CheckInRequest] = Body(None),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.check_in(principal, booking_id, payload or CheckInRequest())
    return ok(BookingResponse.model_validate(booking), "Guest checked in")


@router.post("/{booking_id}/checkout", response_model=SuccessResponse[BookingResponse])
def check_out(
    booking_id: str,
    payload: Optional[CheckOutRequest] = Body(None),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.check_out(principal, booking_id, payload or CheckOutRequest())
    return ok(BookingResponse.model_validate(booking), "Guest checked out")
