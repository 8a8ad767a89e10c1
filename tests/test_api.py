"""
HTTP-level tests: routing, envelopes, authentication and provider callbacks.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from roomlink.api.deps import get_app_settings, get_clock
from roomlink.db.session import get_db
from roomlink.main import create_app
from roomlink.models.enums import BookingStatus, PaymentProvider, UserRole
from tests.conftest import NOW, PASSWORD

CHECK_IN = NOW + timedelta(days=10)


@pytest.fixture
def app(settings, session_factory, clock, gateways, publisher, notifier):
    application = create_app(settings)

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_db
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_app_settings] = lambda: settings
    application.state.payment_gateways = gateways
    application.state.event_bus = publisher
    application.state.notifier = notifier
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    def do_login(user):
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}

    return do_login


def assert_error(response, status_code, code):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == code
    assert "request_id" in body and "timestamp" in body
    return body


class TestPlumbing:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_missing_token(self, client):
        assert_error(client.get("/api/v1/bookings"), 401, "AUTHENTICATION_FAILED")

    def test_garbage_token(self, client):
        response = client.get("/api/v1/bookings", headers={"Authorization": "Bearer not-a-token"})
        assert_error(response, 401, "TOKEN_INVALID")

    def test_request_validation_is_400(self, client):
        response = client.post("/api/v1/auth/register", json={"email": "not-an-email"})
        body = assert_error(response, 400, "VALIDATION_ERROR")
        assert "email" in body["error"]["details"]["field_errors"]

    def test_unknown_resource_is_404(self, client, login, guest):
        response = client.get("/api/v1/bookings/does-not-exist", headers=login(guest))
        assert_error(response, 404, "RESOURCE_NOT_FOUND")

    def test_shutdown_closes_mpesa_client(self, settings):
        application = create_app(settings)
        gateway = application.state.payment_gateways[PaymentProvider.MPESA]

        with TestClient(application):
            assert not gateway.client.is_closed

        assert gateway.client.is_closed


class TestAuthEndpoints:

    def test_register_sets_cookie_and_returns_token(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"name": "Amina Otieno", "email": "amina@example.com", "password": "long-password"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["role"] == "user"
        assert body["data"]["expires_in"] == 24 * 60 * 60
        assert "access_token" in response.cookies

    def test_cookie_authenticates_follow_up_requests(self, client):
        client.post(
            "/api/v1/auth/register",
            json={"name": "Amina Otieno", "email": "amina@example.com", "password": "long-password"},
        )
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "amina@example.com"

    def test_duplicate_registration_is_409(self, client, guest):
        response = client.post(
            "/api/v1/auth/register",
            json={"name": "Again", "email": guest.email, "password": "long-password"},
        )
        assert_error(response, 409, "DUPLICATE_ENTRY")

    def test_bad_password_is_401(self, client, guest):
        response = client.post("/api/v1/auth/login", json={"email": guest.email, "password": "wrong"})
        assert_error(response, 401, "AUTHENTICATION_FAILED")

    def test_lockout_is_403(self, client, guest):
        for _ in range(3):
            client.post("/api/v1/auth/login", json={"email": guest.email, "password": "wrong"})
        response = client.post("/api/v1/auth/login", json={"email": guest.email, "password": PASSWORD})
        assert_error(response, 403, "ACCOUNT_LOCKED")

    def test_staff_creation_requires_permission(self, client, login, host):
        response = client.post(
            "/api/v1/auth/staff",
            json={"name": "Desk", "email": "desk@example.com", "password": "long-password", "staff_type": "RECEPTIONIST"},
            headers=login(host),
        )
        assert_error(response, 403, "INSUFFICIENT_PERMISSIONS")


class TestHostelEndpoints:

    def test_host_creates_hostel_and_room(self, client, login, host):
        headers = login(host)
        created = client.post(
            "/api/v1/hostels",
            json={
                "name": "Lakeside Lodge",
                "description": "Quiet rooms by the lake",
                "address": {"street": "1 Lake Rd", "city": "Kisumu", "country": "Kenya"},
                "amenities": ["wifi", "wifi", "parking"],
            },
            headers=headers,
        )
        assert created.status_code == 201, created.text
        hostel = created.json()["data"]
        assert hostel["amenities"] == ["wifi", "parking"]

        room = client.post(
            f"/api/v1/hostels/{hostel['id']}/rooms",
            json={"room_number": "A1", "room_type": "Single", "capacity": 1, "price_per_night": 45, "total_rooms": 2},
            headers=headers,
        )
        assert room.status_code == 201, room.text
        assert room.json()["data"]["available_rooms"] == 2

    def test_public_search(self, client, hostel):
        response = client.get("/api/v1/hostels", params={"city": "Nairobi"})

        body = response.json()
        assert response.status_code == 200
        assert [h["id"] for h in body["data"]] == [hostel.id]
        assert body["pagination"]["total_items"] == 1

    def test_guest_cannot_create_hostel(self, client, login, guest):
        response = client.post(
            "/api/v1/hostels",
            json={
                "name": "Nope",
                "description": "Guests cannot list hostels",
                "address": {"street": "x", "city": "y", "country": "z"},
            },
            headers=login(guest),
        )
        assert_error(response, 403, "INSUFFICIENT_PERMISSIONS")

    def test_availability_quote(self, client, hostel, room):
        response = client.get(
            f"/api/v1/hostels/{hostel.id}/rooms/{room.id}/availability",
            params={
                "check_in_date": CHECK_IN.isoformat(),
                "check_out_date": (CHECK_IN + timedelta(days=7)).isoformat(),
            },
        )
        data = response.json()["data"]
        assert response.status_code == 200, response.text
        assert data["is_available"] is True
        assert data["pricing"]["total"] == 714.42


class TestBookingFlow:

    def book(self, client, headers, room):
        return client.post(
            "/api/v1/bookings",
            json={
                "room": room.id,
                "check_in_date": CHECK_IN.isoformat(),
                "check_out_date": (CHECK_IN + timedelta(days=7)).isoformat(),
                "number_of_guests": 1,
                "guest_details": {"name": "Grace Guest", "email": "guest@example.com", "phone": "0712345678"},
            },
            headers=headers,
        )

    def test_book_pay_and_confirm_over_mpesa(self, client, login, guest, room, notifier):
        headers = login(guest)

        created = self.book(client, headers, room)
        assert created.status_code == 201, created.text
        booking = created.json()["data"]
        assert booking["status"] == "pending"
        assert booking["total_price"] == 714.42

        initiated = client.post(
            "/api/v1/payments/initiate",
            json={
                "provider": "mpesa",
                "amount": 714.42,
                "description": "Lakeside booking",
                "phone_number": "0712345678",
                "booking_id": booking["id"],
            },
            headers=headers,
        )
        assert initiated.status_code == 200, initiated.text
        checkout_id = initiated.json()["data"]["payment"]["transaction_id"]

        ack = client.post(
            "/api/v1/payments/callback/mpesa",
            json={
                "Body": {
                    "stkCallback": {
                        "CheckoutRequestID": checkout_id,
                        "ResultCode": 0,
                        "ResultDesc": "The service request is processed successfully.",
                        "CallbackMetadata": {
                            "Item": [
                                {"Name": "Amount", "Value": 714.42},
                                {"Name": "MpesaReceiptNumber", "Value": "QKX123ABC"},
                            ]
                        },
                    }
                }
            },
        )
        assert ack.json() == {"ResultCode": 0, "ResultDesc": "Received successfully"}

        fetched = client.get(f"/api/v1/bookings/{booking['id']}", headers=headers).json()["data"]
        assert fetched["status"] == "confirmed"
        assert fetched["payment_status"] == "Completed"
        assert "payment_confirmed" in notifier.templates()

    def test_second_booking_for_same_dates_conflicts(self, client, login, guest, make_booking, room):
        make_booking(guest, room, CHECK_IN, status=BookingStatus.CONFIRMED)
        response = self.book(client, login(guest), room)
        assert_error(response, 400, "BOOKING_CONFLICT")

    def test_reversed_dates(self, client, login, guest, room):
        response = client.post(
            "/api/v1/bookings",
            json={
                "room": room.id,
                "check_in_date": CHECK_IN.isoformat(),
                "check_out_date": (CHECK_IN - timedelta(days=1)).isoformat(),
                "number_of_guests": 1,
                "guest_details": {"name": "Grace Guest", "email": "guest@example.com", "phone": "0712345678"},
            },
            headers=login(guest),
        )
        assert_error(response, 400, "INVALID_DATE_RANGE")

    def test_cancel_with_reason_in_query(self, client, login, guest, make_booking, room):
        booking = make_booking(guest, room, CHECK_IN)
        response = client.delete(
            f"/api/v1/bookings/{booking.id}", params={"reason": "Flight cancelled"}, headers=login(guest)
        )

        data = response.json()["data"]
        assert response.status_code == 200, response.text
        assert data["status"] == "cancelled"
        assert data["cancel_reason"] == "Flight cancelled"
        assert data["refund_percentage"] == 100

    def test_staff_check_in_without_body(self, client, login, clock, guest, staff, make_booking, room):
        booking = make_booking(guest, room, CHECK_IN)
        clock.now = CHECK_IN

        response = client.post(f"/api/v1/bookings/{booking.id}/checkin", headers=login(staff))

        assert response.status_code == 200, response.text
        assert response.json()["data"]["status"] == "checked_in"

    def test_export_download(self, client, login, guest, make_booking, room):
        make_booking(guest, room, CHECK_IN)
        response = client.get("/api/v1/bookings/export", params={"format": "csv"}, headers=login(guest))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == 'attachment; filename="bookings_20250301120000.csv"'
        assert response.text.splitlines()[0].startswith("Booking ID,Guest,Email")

    def test_list_pagination(self, client, login, guest, make_booking, make_room, hostel):
        for offset in range(3):
            make_booking(guest, make_room(hostel), CHECK_IN + timedelta(days=offset))

        body = client.get("/api/v1/bookings", params={"page": 2, "limit": 2}, headers=login(guest)).json()

        assert len(body["data"]) == 1
        assert body["pagination"] == {
            "page": 2,
            "page_size": 2,
            "total_items": 3,
            "total_pages": 2,
            "has_next": False,
            "has_previous": True,
        }


class TestPaymentCallbacks:

    def test_unknown_checkout_is_acknowledged_with_error(self, client):
        response = client.post(
            "/api/v1/payments/callback/mpesa",
            json={"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_missing", "ResultCode": 0}}},
        )
        assert response.status_code == 200
        assert response.json()["ResultCode"] == 1

    def test_stripe_webhook(self, client):
        response = client.post(
            "/api/v1/payments/webhook/stripe",
            content=b'{"type": "customer.created", "data": {"object": {"id": "cus_1"}}}',
            headers={"Stripe-Signature": "t=1,v1=sig"},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}


class TestDashboards:

    def test_admin_dashboard_envelope(self, client, login, admin, guest, make_booking, room):
        make_booking(guest, room, CHECK_IN)
        response = client.get("/api/v1/dashboard/admin", headers=login(admin))

        body = response.json()
        assert response.status_code == 200, response.text
        assert body["success"] is True
        assert body["data"]["bookings"]["confirmed"] == 1
        assert body["data"]["revenue"]["total"] == 0.0

    def test_host_dashboard_forbidden_for_guest(self, client, login, guest):
        response = client.get("/api/v1/dashboard/host", headers=login(guest))
        assert_error(response, 403, "INSUFFICIENT_PERMISSIONS")

    def test_staff_dashboard(self, client, login, make_user):
        staff = make_user(UserRole.STAFF)
        response = client.get("/api/v1/dashboard/staff", headers=login(staff))
        assert response.status_code == 200
        assert response.json()["data"]["today"] == {"check_ins": [], "check_outs": []}


class TestReports:

    def test_payment_export_download(self, client, login, admin, guest, make_payment):
        make_payment(guest)
        response = client.get("/api/v1/payments/export?format=xlsx", headers=login(admin))

        assert response.status_code == 200, response.text
        assert response.headers["content-type"].endswith("spreadsheetml.sheet")
        assert response.headers["content-disposition"] == 'attachment; filename="payments_20250301120000.xlsx"'

    def test_payment_export_needs_admin(self, client, login, guest):
        response = client.get("/api/v1/payments/export", headers=login(guest))
        assert_error(response, 403, "INSUFFICIENT_PERMISSIONS")

    def test_complaint_export_route_is_not_an_id(self, client, login, staff):
        response = client.get("/api/v1/complaints/export?format=csv&status=open", headers=login(staff))

        assert response.status_code == 200, response.text
        assert response.text.startswith("Complaint ID,Title")

    def test_unknown_export_format(self, client, login, staff):
        response = client.get("/api/v1/complaints/export?format=docx", headers=login(staff))
        assert_error(response, 400, "VALIDATION_ERROR")

    def test_top_hostels_and_trends(self, client, login, admin, guest, hostel, room, make_booking, make_payment):
        make_booking(guest, room, CHECK_IN)
        make_payment(guest)
        headers = login(admin)

        top = client.get("/api/v1/dashboard/admin/top-hostels?limit=5", headers=headers).json()["data"]
        trends = client.get("/api/v1/dashboard/admin/trends?days=7", headers=headers).json()["data"]

        assert top["hostels"][0] == {
            "hostel_id": hostel.id,
            "name": hostel.name,
            "city": hostel.city,
            "booking_count": 1,
            "review_count": 0,
            "average_rating": hostel.average_rating,
        }
        assert trends["days"] == 7
        assert trends["revenue"] == [{"date": "2025-03-01", "revenue": 340.2, "transactions": 1}]

    def test_trend_window_is_validated(self, client, login, admin):
        response = client.get("/api/v1/dashboard/admin/trends?days=0", headers=login(admin))
        assert_error(response, 400, "VALIDATION_ERROR")
