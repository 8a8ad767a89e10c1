"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database, a fixed clock, and
recording doubles for the event bus, the notifier and the payment gateways.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import count

# Settings are read once at import time.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "roomlink-test-logs"))

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roomlink.config.settings import Settings
from roomlink.core.permissions import Principal
from roomlink.core.security import JWTManager, PasswordHasher
from roomlink.db.base import Base, import_models
from roomlink.db.session import build_engine
from roomlink.integrations.base import GatewayInitiation, GatewayRefund, GatewayState, GatewayStatus
from roomlink.models.booking import Booking
from roomlink.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    CancellationPolicy,
    PaymentProvider,
    PaymentStatus,
    RoomType,
    StaffType,
    UserRole,
)
from roomlink.models.hostel import Hostel, Room
from roomlink.models.payment import Payment
from roomlink.models.user import User
from roomlink.services.pricing import calculate_pricing

NOW = datetime(2025, 3, 1, 12, 0, 0)
PASSWORD = "s3cret-pass"


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, channels, name, payload):
        self.events.append((tuple(channels), name, payload))

    def names(self):
        return [name for _, name, _ in self.events]

    def last(self, name):
        matches = [event for event in self.events if event[1] == name]
        return matches[-1] if matches else None


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def booking_cancelled(self, email, booking):
        self.sent.append(("booking_cancelled", email, booking))

    def payment_confirmed(self, email, payment):
        self.sent.append(("payment_confirmed", email, payment))

    def review_invitation(self, email, booking, review_url):
        self.sent.append(("review_invitation", email, {**booking, "review_url": review_url}))

    def complaint_updated(self, email, complaint):
        self.sent.append(("complaint_updated", email, complaint))

    def templates(self):
        return [template for template, _, _ in self.sent]


class FakeGateway:
    """In-memory provider: scripted query results, refunds and webhook bodies."""

    _ids = count(1)

    def __init__(self, name: str, refund_completes: bool = True):
        self.name = name
        self.refund_completes = refund_completes
        self.statuses = {}
        self.initiated = []
        self.refunds = []
        self.fail_initiation = None

    def initiate(self, payment):
        if self.fail_initiation is not None:
            raise self.fail_initiation
        transaction_id = f"{self.name}-tx-{next(self._ids)}"
        self.initiated.append((payment.id, transaction_id))
        return GatewayInitiation(
            transaction_id=transaction_id,
            client_secret=f"{transaction_id}_secret" if self.name == "card" else None,
            customer_message="Prompt sent",
        )

    def query(self, transaction_id):
        return self.statuses.get(transaction_id, GatewayStatus(GatewayState.PENDING))

    def refund(self, payment, amount):
        self.refunds.append((payment.id, amount))
        return GatewayRefund(reference=f"re_{payment.id[:8]}", completed=self.refund_completes)

    def parse_webhook(self, payload, signature):
        return json.loads(payload)


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        JWT_SECRET_KEY="test-secret",
        PASSWORD_BCRYPT_ROUNDS=4,
        MAX_LOGIN_ATTEMPTS=3,
        LOCKOUT_MINUTES=15,
        MAX_HOSTELS_PER_OWNER=2,
        FRONTEND_URL="https://roomlink.test",
        LOG_DIR=str(tmp_path / "logs"),
        STRIPE_CURRENCY="usd",
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    import_models()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateways():
    return {
        PaymentProvider.MPESA: FakeGateway("mpesa", refund_completes=False),
        PaymentProvider.CARD: FakeGateway("card"),
    }


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def jwt_manager(settings):
    return JWTManager(secret_key=settings.JWT_SECRET_KEY)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db, hasher):
    counter = count(1)

    def factory(role=UserRole.USER, email=None, staff_type=None, **extra):
        n = next(counter)
        if role == UserRole.STAFF and staff_type is None:
            staff_type = StaffType.RECEPTIONIST
        user = User(
            name=extra.pop("name", f"{role.value.title()} {n}"),
            email=email or f"{role.value}{n}@example.com",
            password_hash=hasher.hash(PASSWORD),
            role=role,
            staff_type=staff_type,
            **extra,
        )
        db.add(user)
        db.commit()
        return user

    return factory


@pytest.fixture
def make_hostel(db):
    counter = count(1)

    def factory(owner, **extra):
        n = next(counter)
        values = dict(
            name=f"Hostel {n}",
            description="Friendly hostel near the centre",
            address={"street": f"{n} Moi Avenue", "city": "Nairobi", "country": "Kenya"},
            city="Nairobi",
            amenities=["wifi", "breakfast"],
            images=[],
            cancellation_policy=CancellationPolicy.MODERATE,
            cancellation_days=7,
            min_stay=1,
            max_stay=60,
        )
        values.update(extra)
        hostel = Hostel(owner_id=owner.id, **values)
        db.add(hostel)
        db.commit()
        return hostel

    return factory


@pytest.fixture
def make_room(db):
    counter = count(1)

    def factory(hostel, **extra):
        n = next(counter)
        values = dict(
            room_number=f"R{n}",
            room_type=RoomType.DOUBLE,
            capacity=2,
            price_per_night=Decimal("100.00"),
            weekly_discount=Decimal("10"),
            monthly_discount=Decimal("20"),
            total_rooms=1,
            available_rooms=1,
            amenities=[],
            images=[],
        )
        values.update(extra)
        room = Room(hostel_id=hostel.id, **values)
        db.add(room)
        db.commit()
        return room

    return factory


@pytest.fixture
def make_booking(db):
    """Insert a booking directly, bypassing the service checks."""

    def factory(user, room, check_in, nights=3, status=BookingStatus.CONFIRMED, units=1, **extra):
        check_out = check_in + timedelta(days=nights)
        pricing = calculate_pricing(room.price_per_night, check_in, check_out, number_of_rooms=units)
        values = dict(
            user_id=user.id,
            room_id=room.id,
            hostel_id=room.hostel_id,
            check_in_date=check_in,
            check_out_date=check_out,
            number_of_guests=1,
            number_of_rooms=units,
            guest_details={"name": user.name, "email": user.email, "phone": "0712345678"},
            nights=pricing.nights,
            price_per_night=pricing.price_per_night,
            subtotal=pricing.subtotal,
            discount_percent=pricing.discount_percent,
            discount_amount=pricing.discount_amount,
            service_fee=pricing.service_fee,
            tax=pricing.tax,
            total_price=pricing.total,
            status=status,
            payment_status=BookingPaymentStatus.PENDING,
        )
        values.update(extra)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        return booking

    return factory


@pytest.fixture
def make_payment(db):
    """Insert a payment directly, bypassing the gateways."""

    def factory(user, booking=None, amount="340.20", status=PaymentStatus.COMPLETED, **extra):
        values = dict(
            user_id=user.id,
            booking_id=booking.id if booking else None,
            provider=PaymentProvider.MPESA,
            amount=Decimal(amount),
            currency="KES",
            description="Hostel booking",
            status=status,
            created_at=NOW,
        )
        values.update(extra)
        payment = Payment(**values)
        db.add(payment)
        db.commit()
        return payment

    return factory


@pytest.fixture
def as_principal():
    def convert(user) -> Principal:
        return Principal(user_id=user.id, role=user.role, email=user.email, staff_type=user.staff_type)

    return convert


# ---------------------------------------------------------------------------
# Common cast
# ---------------------------------------------------------------------------

@pytest.fixture
def guest(make_user):
    return make_user(UserRole.USER, email="guest@example.com", name="Grace Guest")


@pytest.fixture
def host(make_user):
    return make_user(UserRole.HOST, email="host@example.com", name="Harry Host")


@pytest.fixture
def staff(make_user):
    return make_user(UserRole.STAFF, email="staff@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, email="admin@example.com")


@pytest.fixture
def hostel(make_hostel, host):
    return make_hostel(host)


@pytest.fixture
def room(make_room, hostel):
    return make_room(hostel)
