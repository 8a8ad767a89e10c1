"""Hostel listings and their rooms."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.core.constants import (
    DEFAULT_CANCELLATION_DAYS,
    DEFAULT_CHECK_IN_TIME,
    DEFAULT_CHECK_OUT_TIME,
    DEFAULT_MAX_STAY,
    DEFAULT_MIN_STAY,
)
from roomlink.models.base import BaseModel, enum_column
from roomlink.models.enums import CancellationPolicy, HostelStatus, RoomType


class Hostel(BaseModel):
    """
    A listed property owned by a host.

    ``average_rating`` and ``total_reviews`` are denormalized and rewritten
    by the review service whenever a review changes.
    """

    __tablename__ = "hostels"

    owner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # {street, city, state, zip_code, country}
    address: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    latitude: Mapped[Optional[float]] = mapped_column(Float)

    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20))
    check_in_time: Mapped[str] = mapped_column(String(5), default=DEFAULT_CHECK_IN_TIME)
    check_out_time: Mapped[str] = mapped_column(String(5), default=DEFAULT_CHECK_OUT_TIME)

    amenities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    cancellation_policy: Mapped[CancellationPolicy] = mapped_column(
        enum_column(CancellationPolicy), nullable=False, default=CancellationPolicy.MODERATE
    )
    cancellation_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_CANCELLATION_DAYS
    )
    min_stay: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MIN_STAY)
    max_stay: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_MAX_STAY)

    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    account_status: Mapped[HostelStatus] = mapped_column(
        enum_column(HostelStatus), nullable=False, default=HostelStatus.ACTIVE, index=True
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_hostel_rating_range"),
        CheckConstraint("cancellation_days >= 0", name="ck_hostel_cancellation_days"),
    )

    @property
    def is_bookable(self) -> bool:
        return self.account_status == HostelStatus.ACTIVE


class Room(BaseModel):
    """
    A bookable room type inside a hostel.

    ``total_rooms`` is the inventory the availability check counts against.
    """

    __tablename__ = "rooms"

    hostel_id: Mapped[str] = mapped_column(
        ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_number: Mapped[str] = mapped_column(String(20), nullable=False)
    room_type: Mapped[RoomType] = mapped_column(enum_column(RoomType), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    bed_configuration: Mapped[Optional[str]] = mapped_column(String(100))
    total_beds: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    price_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    weekly_discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    monthly_discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))

    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    amenities: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text)
    floor: Mapped[Optional[int]] = mapped_column(Integer)
    view_type: Mapped[str] = mapped_column(String(50), nullable=False, default="No View")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("hostel_id", "room_number", name="uq_room_number_per_hostel"),
        CheckConstraint("price_per_night > 0", name="ck_room_price_positive"),
        CheckConstraint("total_rooms >= 1", name="ck_room_inventory_positive"),
        CheckConstraint("capacity >= 1", name="ck_room_capacity_positive"),
    )
