"""
Booking lifecycle service.

State machine::

    pending -> confirmed -> checked_in -> checked_out
    pending | confirmed -> cancelled

Only confirmed and checked-in bookings hold room units. Every write that
makes a booking hold units runs the capacity count under a row lock on the
room (see ``AvailabilityChecker.lock_and_ensure``).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from roomlink.config.settings import Settings
from roomlink.core.constants import DEFAULT_CANCEL_REASON, DEFAULT_DAMAGES, DEFAULT_ROOM_CONDITION
from roomlink.core.events import ADMIN_CHANNEL, STAFF_CHANNEL, EventPublisher, host_channel, user_channel
from roomlink.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ErrorCode,
    HostelNotFoundError,
    InvalidDateRangeError,
    InvalidStateError,
    RoomNotFoundError,
    ValidationError,
)
from roomlink.core.notifications import Notifier, send_safely
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal, ensure_permission, has_permission
from roomlink.models.booking import Booking
from roomlink.models.enums import BookingPaymentStatus, BookingStatus, CancelledBy
from roomlink.models.hostel import Hostel, Room
from roomlink.repositories.base import PaginatedResult
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.hostel_repository import HostelRepository, RoomRepository
from roomlink.schemas.booking import BookingCreate, BookingUpdate, CheckInRequest, CheckOutRequest
from roomlink.services.availability import AvailabilityChecker
from roomlink.services.base import BaseService
from roomlink.services.export import ensure_export_format, export_filename, render_bookings
from roomlink.services.pricing import PricingBreakdown, calculate_pricing, refund_amount, refund_percentage
from roomlink.utils.datetime_utils import Clock, count_nights, utcnow


class BookingService(BaseService):

    def __init__(
        self,
        db: Session,
        settings: Settings,
        publisher: Optional[EventPublisher] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(db, publisher, clock)
        self.settings = settings
        self.notifier = notifier
        self.bookings = BookingRepository(db)
        self.hostels = HostelRepository(db)
        self.rooms = RoomRepository(db)
        self.availability = AvailabilityChecker(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_booking(self, principal: Principal, data: BookingCreate) -> Booking:
        ensure_permission(principal, Permission.BOOKING_CREATE)
        check_in, check_out = data.check_in_date, data.check_out_date
        if check_out <= check_in:
            raise InvalidDateRangeError(check_in, check_out)

        room = self.rooms.get_by_id(data.room_id)
        if room is None:
            raise RoomNotFoundError(data.room_id)
        hostel = self._get_hostel(room.hostel_id)
        if not room.is_active or not hostel.is_bookable:
            raise ValidationError(
                "Room is not available for booking", error_code=ErrorCode.ROOM_UNAVAILABLE
            )

        nights = count_nights(check_in, check_out)
        self._check_stay_length(hostel, nights)
        self._check_capacity(room, data.number_of_guests, data.number_of_rooms)

        with self.transaction():
            room = self.availability.lock_and_ensure(
                room.id, check_in, check_out, data.number_of_rooms
            )
            pricing = self._price(room, check_in, check_out, data.number_of_rooms)
            booking = Booking(
                user_id=principal.user_id,
                room_id=room.id,
                hostel_id=hostel.id,
                check_in_date=check_in,
                check_out_date=check_out,
                number_of_guests=data.number_of_guests,
                number_of_rooms=data.number_of_rooms,
                guest_details=data.guest_details.model_dump(mode="json"),
                special_requests=data.special_requests,
                status=BookingStatus.PENDING,
                payment_status=BookingPaymentStatus.PENDING,
                **self._pricing_columns(pricing),
            )
            self.bookings.add(booking)

        self._logger.info(
            f"Booking created for room {room.id}",
            extra={"booking_id": booking.id, "user_id": principal.user_id},
        )
        self._publish(
            [ADMIN_CHANNEL, host_channel(hostel.owner_id)],
            "newBooking",
            self._event_payload(booking, hostel_name=hostel.name),
        )
        return booking

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_bookings(
        self,
        principal: Principal,
        params: PaginationParams,
        status: Optional[BookingStatus] = None,
        hostel_id: Optional[str] = None,
    ) -> PaginatedResult[Booking]:
        user_id, hostel_ids = self._visibility_scope(principal, hostel_id)
        return self.bookings.search(params, user_id=user_id, hostel_ids=hostel_ids, status=status)

    def get_booking(self, principal: Principal, booking_id: str) -> Booking:
        booking = self._get(booking_id)
        if not self._can_view(principal, booking):
            raise AuthorizationError("You are not allowed to view this booking")
        return booking

    def export_bookings(self, principal: Principal, fmt: str) -> Tuple[bytes, str, str]:
        """Render the caller's visible bookings; returns (content, media type, filename)."""
        fmt = ensure_export_format(fmt)
        user_id, hostel_ids = self._visibility_scope(principal)
        rows = self.bookings.list_for_export(user_id=user_id, hostel_ids=hostel_ids)
        content, media_type = render_bookings(rows, fmt)
        return content, media_type, export_filename("bookings", fmt, self.clock())

    # ------------------------------------------------------------------
    # Update and cancel
    # ------------------------------------------------------------------

    def update_booking(self, principal: Principal, booking_id: str, data: BookingUpdate) -> Booking:
        booking = self._get(booking_id)
        self._ensure_owner_or_manager(principal, booking, "update")
        if not booking.is_editable:
            raise InvalidStateError(
                f"Booking cannot be modified once {booking.status.value}",
                booking.status.value,
            )

        changes = data.changes()
        room = self.rooms.get_by_id(booking.room_id)
        hostel = self._get_hostel(booking.hostel_id)

        if "number_of_guests" in changes and changes["number_of_guests"] is not None:
            self._check_capacity(room, changes["number_of_guests"], booking.number_of_rooms)

        with self.transaction():
            if data.check_in_date is not None:
                check_in, check_out = data.check_in_date, data.check_out_date
                if check_out <= check_in:
                    raise InvalidDateRangeError(check_in, check_out)
                self._check_stay_length(hostel, count_nights(check_in, check_out))
                room = self.availability.lock_and_ensure(
                    room.id, check_in, check_out, booking.number_of_rooms,
                    exclude_booking_id=booking.id,
                )
                pricing = self._price(room, check_in, check_out, booking.number_of_rooms)
                booking.check_in_date = check_in
                booking.check_out_date = check_out
                for column, value in self._pricing_columns(pricing).items():
                    setattr(booking, column, value)

            if changes.get("number_of_guests") is not None:
                booking.number_of_guests = changes["number_of_guests"]
            if "special_requests" in changes:
                booking.special_requests = changes["special_requests"]

        self._logger.info("Booking updated", extra={"booking_id": booking.id})
        return booking

    def cancel_booking(self, principal: Principal, booking_id: str, reason: Optional[str] = None) -> Booking:
        booking = self._get(booking_id)
        self._ensure_owner_or_manager(principal, booking, "cancel")
        if not booking.is_cancellable:
            raise InvalidStateError(
                f"Booking cannot be cancelled once {booking.status.value}",
                booking.status.value,
            )

        hostel = self._get_hostel(booking.hostel_id)
        now = self.clock()
        percentage = refund_percentage(
            now, booking.check_in_date, hostel.cancellation_days, hostel.cancellation_policy
        )

        with self.transaction():
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = now
            booking.cancelled_by = (
                CancelledBy.USER if principal.user_id == booking.user_id else CancelledBy.ADMIN
            )
            booking.cancel_reason = reason or DEFAULT_CANCEL_REASON
            booking.refund_percentage = percentage
            booking.refund_eligible = percentage > 0
            if booking.payment_status == BookingPaymentStatus.COMPLETED:
                booking.payment_status = BookingPaymentStatus.REFUNDED
                booking.refund_amount = refund_amount(booking.total_price, percentage)
                booking.refunded_at = now

        self._logger.info(
            f"Booking cancelled with {percentage}% refund",
            extra={"booking_id": booking.id, "user_id": principal.user_id},
        )
        self._publish(
            [ADMIN_CHANNEL, host_channel(hostel.owner_id), user_channel(booking.user_id)],
            "bookingCancelled",
            self._event_payload(booking, refund_percentage=percentage),
        )
        if self.notifier is not None:
            send_safely(
                self.notifier.booking_cancelled,
                booking.guest_details.get("email"),
                self._summary(booking, hostel),
                context={"booking_id": booking.id},
            )
        return booking

    # ------------------------------------------------------------------
    # Confirmation (payment driven)
    # ------------------------------------------------------------------

    def confirm(self, booking: Booking, transaction_id: Optional[str] = None) -> Booking:
        """
        Move a pending booking to confirmed inside the caller's transaction.

        Raises ``BookingConflictError`` when the room filled up after the
        booking was made; nothing is modified in that case.
        """
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateError(
                "Only pending bookings can be confirmed", booking.status.value
            )
        self.availability.lock_and_ensure(
            booking.room_id,
            booking.check_in_date,
            booking.check_out_date,
            booking.number_of_rooms,
            exclude_booking_id=booking.id,
        )
        booking.status = BookingStatus.CONFIRMED
        if transaction_id:
            booking.transaction_id = transaction_id
        return booking

    def confirm_booking(self, booking_id: str, transaction_id: Optional[str] = None) -> Booking:
        booking = self._get(booking_id)
        with self.transaction():
            self.confirm(booking, transaction_id)
        self._logger.info("Booking confirmed", extra={"booking_id": booking.id})
        self.publish_confirmed(booking)
        return booking

    def publish_confirmed(self, booking: Booking) -> None:
        hostel = self.hostels.get_by_id(booking.hostel_id)
        channels = [ADMIN_CHANNEL, user_channel(booking.user_id)]
        if hostel is not None:
            channels.append(host_channel(hostel.owner_id))
        self._publish(channels, "bookingConfirmed", self._event_payload(booking))

    # ------------------------------------------------------------------
    # Check-in / check-out
    # ------------------------------------------------------------------

    def check_in(self, principal: Principal, booking_id: str, data: CheckInRequest) -> Booking:
        ensure_permission(principal, Permission.BOOKING_CHECK_IN)
        booking = self._get(booking_id)
        hostel = self._ensure_front_desk(principal, booking)

        if booking.status == BookingStatus.CHECKED_IN:
            raise InvalidStateError(
                "Guest is already checked in", booking.status.value, ErrorCode.GUEST_ALREADY_CHECKED_IN
            )
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(
                "Only confirmed bookings can be checked in", booking.status.value
            )
        now = self.clock()
        if now < booking.check_in_date:
            raise InvalidStateError(
                "Check-in is not possible before the booked check-in date",
                booking.status.value,
                ErrorCode.CHECK_IN_TOO_EARLY,
            )

        with self.transaction():
            booking.status = BookingStatus.CHECKED_IN
            booking.checked_in_at = now
            booking.checked_in_by = principal.user_id
            booking.document_verified = data.document_verified
            booking.room_key_issued = data.room_key_issued
            booking.check_in_condition = data.room_condition or DEFAULT_ROOM_CONDITION

        self._logger.info("Guest checked in", extra={"booking_id": booking.id, "user_id": principal.user_id})
        self._publish(
            [ADMIN_CHANNEL, STAFF_CHANNEL, host_channel(hostel.owner_id)],
            "guestCheckedIn",
            self._event_payload(booking, checked_in_by=principal.user_id),
        )
        return booking

    def check_out(self, principal: Principal, booking_id: str, data: CheckOutRequest) -> Booking:
        ensure_permission(principal, Permission.BOOKING_CHECK_OUT)
        booking = self._get(booking_id)
        hostel = self._ensure_front_desk(principal, booking)

        if booking.status != BookingStatus.CHECKED_IN:
            raise InvalidStateError(
                "Guest has not checked in",
                booking.status.value,
                ErrorCode.GUEST_NOT_CHECKED_IN,
            )

        with self.transaction():
            booking.status = BookingStatus.CHECKED_OUT
            booking.checked_out_at = self.clock()
            booking.checked_out_by = principal.user_id
            booking.room_key_returned = data.room_key_returned
            booking.check_out_condition = data.room_condition or DEFAULT_ROOM_CONDITION
            booking.damages = data.damages or DEFAULT_DAMAGES
            booking.damage_charges = data.damage_charges or Decimal("0")

        self._logger.info("Guest checked out", extra={"booking_id": booking.id, "user_id": principal.user_id})
        self._publish(
            [ADMIN_CHANNEL, STAFF_CHANNEL, host_channel(hostel.owner_id)],
            "guestCheckedOut",
            self._event_payload(booking, checked_out_by=principal.user_id),
        )
        if self.notifier is not None:
            review_url = f"{self.settings.FRONTEND_URL.rstrip('/')}/review/{booking.id}"
            send_safely(
                self.notifier.review_invitation,
                booking.guest_details.get("email"),
                self._summary(booking, hostel),
                review_url,
                context={"booking_id": booking.id},
            )
        return booking

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, booking_id: str) -> Booking:
        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def _get_hostel(self, hostel_id: str) -> Hostel:
        hostel = self.hostels.get_by_id(hostel_id)
        if hostel is None:
            raise HostelNotFoundError(hostel_id)
        return hostel

    def _visibility_scope(
        self, principal: Principal, hostel_id: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[List[str]]]:
        """(user_id, hostel_ids) filters matching what the caller may see."""
        if has_permission(principal, Permission.BOOKING_VIEW_ALL):
            return None, [hostel_id] if hostel_id else None
        if has_permission(principal, Permission.BOOKING_VIEW_OWN_HOSTELS):
            owned = self.hostels.ids_owned_by(principal.user_id)
            if hostel_id:
                owned = [hid for hid in owned if hid == hostel_id]
            return None, owned
        return principal.user_id, [hostel_id] if hostel_id else None

    def _can_view(self, principal: Principal, booking: Booking) -> bool:
        if booking.user_id == principal.user_id:
            return True
        if has_permission(principal, Permission.BOOKING_VIEW_ALL):
            return True
        if has_permission(principal, Permission.BOOKING_VIEW_OWN_HOSTELS):
            hostel = self.hostels.get_by_id(booking.hostel_id)
            return hostel is not None and hostel.owner_id == principal.user_id
        return False

    @staticmethod
    def _ensure_owner_or_manager(principal: Principal, booking: Booking, action: str) -> None:
        if booking.user_id != principal.user_id and not has_permission(principal, Permission.BOOKING_MANAGE_ANY):
            raise AuthorizationError(f"You are not allowed to {action} this booking")

    def _ensure_front_desk(self, principal: Principal, booking: Booking) -> Hostel:
        """Hosts may only operate the desk of their own hostels."""
        hostel = self._get_hostel(booking.hostel_id)
        if has_permission(principal, Permission.BOOKING_VIEW_ALL):
            return hostel
        if hostel.owner_id != principal.user_id:
            raise AuthorizationError("You can only manage guests of your own hostels")
        return hostel

    @staticmethod
    def _check_stay_length(hostel: Hostel, nights: int) -> None:
        if nights < hostel.min_stay or nights > hostel.max_stay:
            raise ValidationError(
                f"Stay must be between {hostel.min_stay} and {hostel.max_stay} nights",
                details={"nights": nights},
            )

    @staticmethod
    def _check_capacity(room: Room, guests: int, units: int) -> None:
        if guests > room.capacity * units:
            raise ValidationError(
                f"Room capacity exceeded: {units} unit(s) sleep at most {room.capacity * units} guests",
                error_code=ErrorCode.INSUFFICIENT_CAPACITY,
            )

    @staticmethod
    def _price(room: Room, check_in: datetime, check_out: datetime, units: int) -> PricingBreakdown:
        return calculate_pricing(
            room.price_per_night,
            check_in,
            check_out,
            number_of_rooms=units,
            weekly_discount=room.weekly_discount,
            monthly_discount=room.monthly_discount,
        )

    @staticmethod
    def _pricing_columns(pricing: PricingBreakdown) -> Dict[str, Any]:
        return {
            "nights": pricing.nights,
            "price_per_night": pricing.price_per_night,
            "subtotal": pricing.subtotal,
            "discount_percent": pricing.discount_percent,
            "discount_amount": pricing.discount_amount,
            "service_fee": pricing.service_fee,
            "tax": pricing.tax,
            "total_price": pricing.total,
        }

    @staticmethod
    def _event_payload(booking: Booking, **extra: Any) -> Dict[str, Any]:
        payload = {
            "booking_id": booking.id,
            "hostel_id": booking.hostel_id,
            "room_id": booking.room_id,
            "user_id": booking.user_id,
            "status": booking.status.value,
            "check_in_date": booking.check_in_date.isoformat(),
            "check_out_date": booking.check_out_date.isoformat(),
            "total_price": float(booking.total_price),
        }
        payload.update(extra)
        return payload

    @staticmethod
    def _summary(booking: Booking, hostel: Hostel) -> Dict[str, Any]:
        return {
            "booking_id": booking.id,
            "guest_name": booking.guest_details.get("name"),
            "hostel_name": hostel.name,
            "check_in_date": booking.check_in_date.isoformat(),
            "check_out_date": booking.check_out_date.isoformat(),
            "total_price": float(booking.total_price),
            "refund_percentage": booking.refund_percentage,
            "refund_amount": float(booking.refund_amount or 0),
        }
