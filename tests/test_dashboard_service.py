from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from roomlink.core.exceptions import AuthorizationError, ValidationError
from roomlink.models.complaint import Complaint
from roomlink.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    PaymentStatus,
    UserRole,
)
from roomlink.services.dashboard_service import DashboardService
from tests.conftest import NOW


@pytest.fixture
def service(db, clock):
    return DashboardService(db, clock=clock)


@pytest.fixture
def file_complaint(db):
    def factory(user, hostel, status=ComplaintStatus.OPEN, handled_by=None, priority=ComplaintPriority.MEDIUM):
        complaint = Complaint(
            user_id=user.id,
            hostel_id=hostel.id,
            title="Leaking tap",
            description="The bathroom tap leaks all night.",
            category=ComplaintCategory.MAINTENANCE,
            priority=priority,
            status=status,
            attachments=[],
            is_escalated=False,
            handled_by=handled_by,
        )
        db.add(complaint)
        db.commit()
        return complaint

    return factory


class TestAdminDashboard:

    def test_platform_totals(self, service, make_booking, file_complaint, guest, host, admin, hostel, room, as_principal):
        make_booking(guest, room, NOW, status=BookingStatus.CONFIRMED)
        make_booking(guest, room, NOW + timedelta(days=20), status=BookingStatus.CANCELLED)
        file_complaint(guest, hostel, status=ComplaintStatus.RESOLVED)
        file_complaint(guest, hostel)

        data = service.admin_dashboard(as_principal(admin))

        assert data["users"]["total"] == 3
        assert data["users"]["by_role"] == {"user": 1, "host": 1, "admin": 1}
        assert data["hostels"]["active"] == 1
        assert data["bookings"]["confirmed"] == 1
        assert data["bookings"]["cancelled"] == 1
        assert data["bookings"]["pending"] == 0
        assert data["complaints"]["total"] == 2
        assert data["complaints"]["resolution_rate"] == 50.0
        assert data["reviews"] == {"total": 0, "average_rating": 0.0}
        assert data["revenue"]["total"] == Decimal("0.00")
        assert sum(row["bookings"] for row in data["monthly_trend"]) == 1

    def test_monthly_trend_counts_only_collected_revenue(
        self, service, make_booking, make_payment, guest, admin, room, as_principal
    ):
        make_booking(guest, room, NOW + timedelta(days=5), status=BookingStatus.PENDING, created_at=NOW)
        paid = make_booking(
            guest, room, NOW + timedelta(days=20),
            payment_status=BookingPaymentStatus.COMPLETED, created_at=NOW,
        )
        make_payment(guest, paid)
        make_payment(guest, amount="99.00", status=PaymentStatus.FAILED)

        trend = service.admin_dashboard(as_principal(admin))["monthly_trend"]

        assert trend == [
            {
                "month": "2025-03",
                "bookings": 2,
                "booking_value": Decimal("680.40"),
                "revenue": Decimal("340.20"),
            }
        ]

    def test_revenue_only_month_appears_in_trend(self, service, make_payment, guest, admin, as_principal):
        make_payment(guest, amount="50.00", created_at=NOW - timedelta(days=40))

        trend = service.admin_dashboard(as_principal(admin))["monthly_trend"]

        assert trend == [
            {"month": "2025-01", "bookings": 0, "booking_value": Decimal("0.00"), "revenue": Decimal("50.00")}
        ]

    def test_window_must_be_ordered(self, service, admin, as_principal):
        with pytest.raises(ValidationError):
            service.admin_dashboard(as_principal(admin), start=NOW, end=NOW)

    def test_hosts_are_refused(self, service, host, as_principal):
        with pytest.raises(AuthorizationError):
            service.admin_dashboard(as_principal(host))


class TestAnalytics:

    def test_top_hostels_ranked_by_bookings(
        self, service, make_hostel, make_room, make_booking, guest, host, admin, hostel, room, as_principal
    ):
        quiet = make_hostel(host, name="Quiet Corner")
        make_booking(guest, room, NOW)
        make_booking(guest, room, NOW + timedelta(days=10))
        make_booking(guest, make_room(quiet), NOW)

        top = service.top_hostels(as_principal(admin))

        assert [(row["hostel_id"], row["booking_count"]) for row in top] == [(hostel.id, 2), (quiet.id, 1)]
        assert top[0]["review_count"] == 0
        assert service.top_hostels(as_principal(admin), limit=1)[0]["hostel_id"] == hostel.id
        assert service.admin_dashboard(as_principal(admin))["top_hostels"] == top

    def test_daily_revenue_and_signups(self, service, make_payment, make_user, guest, admin, as_principal):
        make_payment(guest)
        make_payment(guest, amount="100.00", created_at=NOW - timedelta(days=2))
        make_payment(guest, amount="75.00", status=PaymentStatus.FAILED)
        make_payment(guest, amount="500.00", created_at=NOW - timedelta(days=60))
        make_user(created_at=NOW)
        make_user(UserRole.HOST, created_at=NOW)
        make_user(created_at=NOW - timedelta(days=60))

        data = service.trends(as_principal(admin), days=30)

        assert data["since"] == datetime(2025, 1, 31)
        assert data["revenue"] == [
            {"date": "2025-02-27", "revenue": Decimal("100.00"), "transactions": 1},
            {"date": "2025-03-01", "revenue": Decimal("340.20"), "transactions": 1},
        ]
        growth = {row["date"]: row for row in data["user_growth"]}
        assert growth["2025-03-01"]["new_users"] == 2
        assert growth["2025-03-01"]["by_role"] == {"user": 1, "host": 1}
        assert "2025-01-01" not in growth

    def test_trend_window_is_bounded(self, service, admin, as_principal):
        with pytest.raises(ValidationError):
            service.trends(as_principal(admin), days=0)
        with pytest.raises(ValidationError):
            service.trends(as_principal(admin), days=400)

    def test_hosts_cannot_see_analytics(self, service, host, as_principal):
        with pytest.raises(AuthorizationError):
            service.top_hostels(as_principal(host))
        with pytest.raises(AuthorizationError):
            service.trends(as_principal(host))


class TestHostDashboard:

    def test_per_hostel_rows(self, service, make_booking, make_room, file_complaint, guest, host, hostel, room, as_principal):
        make_room(hostel, total_rooms=3, available_rooms=3)
        make_booking(guest, room, NOW, status=BookingStatus.CHECKED_IN, payment_status=BookingPaymentStatus.COMPLETED)
        make_booking(guest, room, NOW + timedelta(days=30), status=BookingStatus.PENDING)
        file_complaint(guest, hostel)

        data = service.host_dashboard(as_principal(host))

        assert data["total_hostels"] == 1
        assert data["total_bookings"] == 2
        row = data["hostels"][0]
        assert row["hostel_id"] == hostel.id
        assert row["bookings"] == {"checked_in": 1, "pending": 1}
        assert row["total_units"] == 4
        assert row["occupied_units"] == 1
        assert row["occupancy_rate"] == 25.0
        assert row["open_complaints"] == 1
        assert row["revenue"] == data["total_revenue"] == Decimal("340.20")

    def test_host_without_hostels(self, service, make_user, as_principal):
        data = service.host_dashboard(as_principal(make_user(UserRole.HOST)))
        assert data == {
            "total_hostels": 0,
            "total_revenue": Decimal("0.00"),
            "total_bookings": 0,
            "hostels": [],
        }

    def test_other_hosts_data_is_excluded(self, service, make_booking, make_user, guest, room, as_principal):
        make_booking(guest, room, NOW)
        data = service.host_dashboard(as_principal(make_user(UserRole.HOST)))
        assert data["total_bookings"] == 0


class TestStaffDashboard:

    def test_today_and_assigned_complaints(
        self, service, make_booking, file_complaint, guest, staff, hostel, room, make_room, as_principal
    ):
        arriving = make_booking(guest, room, NOW + timedelta(hours=2))
        leaving = make_booking(
            guest, make_room(hostel), NOW - timedelta(days=2), nights=2, status=BookingStatus.CHECKED_IN
        )
        make_booking(guest, make_room(hostel), NOW + timedelta(days=1))
        file_complaint(guest, hostel, handled_by=staff.id, priority=ComplaintPriority.URGENT)
        file_complaint(guest, hostel)

        data = service.staff_dashboard(as_principal(staff))

        assert [row["booking_id"] for row in data["today"]["check_ins"]] == [arriving.id]
        assert [row["booking_id"] for row in data["today"]["check_outs"]] == [leaving.id]
        assert data["today"]["check_ins"][0]["guest_name"] == guest.name
        assert data["complaints"]["by_status"]["open"] == 1
        assert data["complaints"]["by_priority"]["urgent"] == 1
        assert len(data["complaints"]["recent"]) == 1

    def test_guests_are_refused(self, service, guest, as_principal):
        with pytest.raises(AuthorizationError):
            service.staff_dashboard(as_principal(guest))
