from datetime import timedelta
from decimal import Decimal

import pytest

from roomlink.core.exceptions import (
    AuthorizationError,
    BookingConflictError,
    ErrorCode,
    InvalidDateRangeError,
    InvalidStateError,
    ValidationError,
)
from roomlink.core.pagination import PaginationParams
from roomlink.models.enums import BookingPaymentStatus, BookingStatus, CancelledBy, HostelStatus, UserRole
from roomlink.schemas.booking import BookingCreate, BookingUpdate, CheckInRequest, CheckOutRequest
from roomlink.services.booking_service import BookingService
from tests.conftest import NOW

CHECK_IN = NOW + timedelta(days=10)


@pytest.fixture
def service(db, settings, publisher, notifier, clock):
    return BookingService(db, settings, publisher=publisher, notifier=notifier, clock=clock)


def booking_request(room, nights=7, **overrides):
    data = {
        "room": room.id,
        "check_in_date": CHECK_IN,
        "check_out_date": CHECK_IN + timedelta(days=nights),
        "number_of_guests": 1,
        "guest_details": {"name": "Grace Guest", "email": "grace@example.com", "phone": "0712345678"},
    }
    data.update(overrides)
    return BookingCreate(**data)


class TestCreateBooking:

    def test_creates_pending_booking_with_pricing(self, service, publisher, guest, room, as_principal):
        booking = service.create_booking(as_principal(guest), booking_request(room))

        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == BookingPaymentStatus.PENDING
        assert booking.nights == 7
        assert booking.total_price == Decimal("714.42")
        assert booking.guest_details["email"] == "grace@example.com"
        assert publisher.names() == ["newBooking"]

    def test_pending_booking_does_not_block_another(self, service, guest, make_user, room, as_principal):
        service.create_booking(as_principal(guest), booking_request(room))
        second = service.create_booking(as_principal(make_user()), booking_request(room))
        assert second.status == BookingStatus.PENDING

    def test_full_room_conflicts(self, service, make_booking, guest, room, as_principal):
        make_booking(guest, room, CHECK_IN)
        with pytest.raises(BookingConflictError):
            service.create_booking(as_principal(guest), booking_request(room))

    def test_check_out_before_check_in(self, service, guest, room, as_principal):
        request = booking_request(room, check_out_date=CHECK_IN - timedelta(days=1))
        with pytest.raises(InvalidDateRangeError):
            service.create_booking(as_principal(guest), request)

    def test_guest_count_limited_by_capacity(self, service, guest, room, as_principal):
        with pytest.raises(ValidationError) as exc:
            service.create_booking(as_principal(guest), booking_request(room, number_of_guests=3))
        assert exc.value.error_code == ErrorCode.INSUFFICIENT_CAPACITY

    def test_stay_length_limits(self, service, guest, make_hostel, make_room, host, as_principal):
        strict = make_hostel(host, min_stay=3, max_stay=5)
        room = make_room(strict)
        with pytest.raises(ValidationError):
            service.create_booking(as_principal(guest), booking_request(room, nights=2))
        with pytest.raises(ValidationError):
            service.create_booking(as_principal(guest), booking_request(room, nights=6))

    def test_inactive_hostel_rejects_bookings(self, service, db, guest, hostel, room, as_principal):
        hostel.account_status = HostelStatus.SUSPENDED
        db.commit()
        with pytest.raises(ValidationError) as exc:
            service.create_booking(as_principal(guest), booking_request(room))
        assert exc.value.error_code == ErrorCode.ROOM_UNAVAILABLE

    def test_staff_cannot_book(self, service, staff, room, as_principal):
        with pytest.raises(AuthorizationError):
            service.create_booking(as_principal(staff), booking_request(room))


class TestVisibility:

    @pytest.fixture
    def bookings(self, make_booking, make_hostel, make_room, make_user, guest, host, room):
        other_host = make_user(UserRole.HOST)
        other_room = make_room(make_hostel(other_host))
        stranger = make_user()
        return {
            "mine": make_booking(guest, room, CHECK_IN),
            "elsewhere": make_booking(stranger, other_room, CHECK_IN),
        }

    def test_guest_sees_only_own_bookings(self, service, bookings, guest, as_principal):
        result = service.list_bookings(as_principal(guest), PaginationParams())
        assert [b.id for b in result.items] == [bookings["mine"].id]

    def test_host_sees_bookings_of_owned_hostels(self, service, bookings, host, as_principal):
        result = service.list_bookings(as_principal(host), PaginationParams())
        assert [b.id for b in result.items] == [bookings["mine"].id]

    def test_staff_sees_everything(self, service, bookings, staff, as_principal):
        result = service.list_bookings(as_principal(staff), PaginationParams())
        assert result.total_items == 2

    def test_status_filter(self, service, bookings, staff, as_principal):
        result = service.list_bookings(
            as_principal(staff), PaginationParams(), status=BookingStatus.CANCELLED
        )
        assert result.total_items == 0

    def test_stranger_cannot_read_booking(self, service, bookings, make_user, as_principal):
        with pytest.raises(AuthorizationError):
            service.get_booking(as_principal(make_user()), bookings["mine"].id)


class TestCancelBooking:

    def test_full_refund_outside_cancellation_window(
        self, service, publisher, notifier, make_booking, guest, room, as_principal
    ):
        booking = make_booking(guest, room, CHECK_IN, payment_status=BookingPaymentStatus.COMPLETED)

        cancelled = service.cancel_booking(as_principal(guest), booking.id, "Change of plans")

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by == CancelledBy.USER
        assert cancelled.refund_percentage == 100
        assert cancelled.refund_amount == cancelled.total_price
        assert cancelled.payment_status == BookingPaymentStatus.REFUNDED
        assert publisher.last("bookingCancelled")[2]["refund_percentage"] == 100
        assert notifier.sent[-1][:2] == ("booking_cancelled", guest.email)

    def test_half_refund_close_to_arrival(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(
            guest, room, NOW + timedelta(days=3), payment_status=BookingPaymentStatus.COMPLETED
        )
        cancelled = service.cancel_booking(as_principal(guest), booking.id)

        assert cancelled.refund_percentage == 50
        assert cancelled.refund_amount == (booking.total_price / 2).quantize(Decimal("0.01"))

    def test_unpaid_booking_records_eligibility_only(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.PENDING)
        cancelled = service.cancel_booking(as_principal(guest), booking.id)

        assert cancelled.refund_eligible
        assert cancelled.payment_status == BookingPaymentStatus.PENDING
        assert cancelled.refund_amount == 0

    def test_admin_cancellation_is_attributed(self, service, make_booking, guest, admin, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        cancelled = service.cancel_booking(as_principal(admin), booking.id)
        assert cancelled.cancelled_by == CancelledBy.ADMIN

    def test_cannot_cancel_twice(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        service.cancel_booking(as_principal(guest), booking.id)
        with pytest.raises(InvalidStateError):
            service.cancel_booking(as_principal(guest), booking.id)

    def test_cancelled_booking_frees_the_room(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        service.cancel_booking(as_principal(guest), booking.id)
        assert service.create_booking(as_principal(guest), booking_request(room)).id != booking.id

    def test_other_guest_cannot_cancel(self, service, make_booking, make_user, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        with pytest.raises(AuthorizationError):
            service.cancel_booking(as_principal(make_user()), booking.id)


class TestUpdateBooking:

    def test_new_dates_are_repriced(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, nights=3)
        update = BookingUpdate(check_in_date=CHECK_IN, check_out_date=CHECK_IN + timedelta(days=7))

        updated = service.update_booking(as_principal(guest), booking.id, update)

        assert updated.nights == 7
        assert updated.total_price == Decimal("714.42")

    def test_own_stay_does_not_conflict_with_itself(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, nights=3)
        update = BookingUpdate(
            check_in_date=CHECK_IN + timedelta(days=1), check_out_date=CHECK_IN + timedelta(days=4)
        )
        assert service.update_booking(as_principal(guest), booking.id, update).nights == 3

    def test_dates_must_change_together(self):
        with pytest.raises(ValueError):
            BookingUpdate(check_in_date=CHECK_IN)

    def test_checked_in_booking_is_locked(self, service, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.CHECKED_IN)
        with pytest.raises(InvalidStateError):
            service.update_booking(as_principal(guest), booking.id, BookingUpdate(number_of_guests=2))


class TestConfirm:

    def test_confirm_pending_booking(self, service, publisher, make_booking, guest, room):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.PENDING)
        confirmed = service.confirm_booking(booking.id, transaction_id="tx-1")

        assert confirmed.status == BookingStatus.CONFIRMED
        assert confirmed.transaction_id == "tx-1"
        assert "bookingConfirmed" in publisher.names()

    def test_only_pending_can_be_confirmed(self, service, make_booking, guest, room):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.CONFIRMED)
        with pytest.raises(InvalidStateError):
            service.confirm_booking(booking.id)


class TestFrontDesk:

    def test_check_in_and_out(self, service, clock, publisher, notifier, make_booking, guest, staff, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        clock.now = CHECK_IN + timedelta(hours=2)

        checked_in = service.check_in(
            as_principal(staff), booking.id, CheckInRequest(document_verified=True, room_key_issued=True)
        )
        assert checked_in.status == BookingStatus.CHECKED_IN
        assert checked_in.checked_in_by == staff.id
        assert checked_in.document_verified

        clock.advance(days=3)
        checked_out = service.check_out(
            as_principal(staff), booking.id, CheckOutRequest(room_key_returned=True, damage_charges=15)
        )
        assert checked_out.status == BookingStatus.CHECKED_OUT
        assert checked_out.damage_charges == Decimal("15")
        assert publisher.names()[-2:] == ["guestCheckedIn", "guestCheckedOut"]

        template, email, payload = notifier.sent[-1]
        assert template == "review_invitation"
        assert email == guest.email
        assert payload["review_url"] == f"https://roomlink.test/review/{booking.id}"

    def test_check_in_before_arrival_date(self, service, make_booking, guest, staff, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        with pytest.raises(InvalidStateError) as exc:
            service.check_in(as_principal(staff), booking.id, CheckInRequest())
        assert exc.value.error_code == ErrorCode.CHECK_IN_TOO_EARLY

    def test_pending_booking_cannot_check_in(self, service, clock, make_booking, guest, staff, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.PENDING)
        clock.now = CHECK_IN
        with pytest.raises(InvalidStateError):
            service.check_in(as_principal(staff), booking.id, CheckInRequest())

    def test_double_check_in(self, service, clock, make_booking, guest, staff, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN, status=BookingStatus.CHECKED_IN)
        clock.now = CHECK_IN
        with pytest.raises(InvalidStateError) as exc:
            service.check_in(as_principal(staff), booking.id, CheckInRequest())
        assert exc.value.error_code == ErrorCode.GUEST_ALREADY_CHECKED_IN

    def test_check_out_requires_check_in(self, service, make_booking, guest, staff, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        with pytest.raises(InvalidStateError) as exc:
            service.check_out(as_principal(staff), booking.id, CheckOutRequest())
        assert exc.value.error_code == ErrorCode.GUEST_NOT_CHECKED_IN

    def test_host_runs_only_own_front_desk(
        self, service, clock, make_booking, make_user, guest, room, as_principal
    ):
        booking = make_booking(guest, room, CHECK_IN)
        clock.now = CHECK_IN
        with pytest.raises(AuthorizationError):
            service.check_in(as_principal(make_user(UserRole.HOST)), booking.id, CheckInRequest())

    def test_guest_cannot_check_in(self, service, clock, make_booking, guest, room, as_principal):
        booking = make_booking(guest, room, CHECK_IN)
        clock.now = CHECK_IN
        with pytest.raises(AuthorizationError):
            service.check_in(as_principal(guest), booking.id, CheckInRequest())
