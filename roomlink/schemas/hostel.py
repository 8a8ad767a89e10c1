"""Hostel and room schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from roomlink.core.constants import (
    DEFAULT_CANCELLATION_DAYS,
    DEFAULT_CHECK_IN_TIME,
    DEFAULT_CHECK_OUT_TIME,
    DEFAULT_MAX_STAY,
    DEFAULT_MIN_STAY,
)
from roomlink.models.enums import CancellationPolicy, HostelStatus, RoomType
from roomlink.schemas.common import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseSchema,
    BaseUpdateSchema,
    Money,
)

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class Address(BaseSchema):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class Coordinates(BaseSchema):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)


class HostelPolicies(BaseSchema):
    cancellation: CancellationPolicy = CancellationPolicy.MODERATE
    cancellation_days: int = Field(DEFAULT_CANCELLATION_DAYS, ge=0, le=365)
    min_stay: int = Field(DEFAULT_MIN_STAY, ge=1)
    max_stay: int = Field(DEFAULT_MAX_STAY, ge=1)


class HostelCreate(BaseCreateSchema):
    name: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=5000)
    address: Address
    coordinates: Optional[Coordinates] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    check_in_time: str = Field(DEFAULT_CHECK_IN_TIME, pattern=TIME_PATTERN)
    check_out_time: str = Field(DEFAULT_CHECK_OUT_TIME, pattern=TIME_PATTERN)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    policies: HostelPolicies = Field(default_factory=HostelPolicies)

    @field_validator("amenities")
    @classmethod
    def dedupe_amenities(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(a.strip() for a in v if a.strip()))


class HostelUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    address: Optional[Address] = None
    coordinates: Optional[Coordinates] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    check_in_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    check_out_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    policies: Optional[HostelPolicies] = None
    account_status: Optional[HostelStatus] = None


class HostelResponse(BaseResponseSchema):
    owner_id: str
    name: str
    description: str
    address: Address
    full_address: str
    coordinates: Optional[Coordinates] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    check_in_time: str
    check_out_time: str
    amenities: List[str]
    images: List[str]
    policies: HostelPolicies
    average_rating: float
    total_reviews: int
    account_status: HostelStatus
    is_verified: bool

    @classmethod
    def from_model(cls, hostel) -> "HostelResponse":
        coordinates = None
        if hostel.longitude is not None and hostel.latitude is not None:
            coordinates = Coordinates(longitude=hostel.longitude, latitude=hostel.latitude)
        return cls(
            id=hostel.id,
            created_at=hostel.created_at,
            updated_at=hostel.updated_at,
            owner_id=hostel.owner_id,
            name=hostel.name,
            description=hostel.description,
            address=Address(**hostel.address),
            full_address=full_address(hostel.address),
            coordinates=coordinates,
            contact_email=hostel.contact_email,
            contact_phone=hostel.contact_phone,
            check_in_time=hostel.check_in_time,
            check_out_time=hostel.check_out_time,
            amenities=hostel.amenities or [],
            images=hostel.images or [],
            policies=HostelPolicies(
                cancellation=hostel.cancellation_policy,
                cancellation_days=hostel.cancellation_days,
                min_stay=hostel.min_stay,
                max_stay=hostel.max_stay,
            ),
            average_rating=hostel.average_rating,
            total_reviews=hostel.total_reviews,
            account_status=hostel.account_status,
            is_verified=hostel.is_verified,
        )


def full_address(address: Optional[dict]) -> str:
    """``"street, city, country"`` with blank parts skipped."""
    if not address:
        return ""
    parts = (address.get("street"), address.get("city"), address.get("country"))
    return ", ".join(p.strip() for p in parts if p and p.strip())


class RoomCreate(BaseCreateSchema):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: RoomType
    capacity: int = Field(..., ge=1, le=50)
    bed_configuration: Optional[str] = Field(None, max_length=100)
    total_beds: int = Field(1, ge=1)
    price_per_night: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    weekly_discount: Decimal = Field(Decimal("0"), ge=0, le=100)
    monthly_discount: Decimal = Field(Decimal("0"), ge=0, le=100)
    total_rooms: int = Field(1, ge=1)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=2000)
    floor: Optional[int] = None
    view_type: str = Field("No View", max_length=50)


class RoomUpdate(BaseUpdateSchema):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type: Optional[RoomType] = None
    capacity: Optional[int] = Field(None, ge=1, le=50)
    bed_configuration: Optional[str] = Field(None, max_length=100)
    total_beds: Optional[int] = Field(None, ge=1)
    price_per_night: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    weekly_discount: Optional[Decimal] = Field(None, ge=0, le=100)
    monthly_discount: Optional[Decimal] = Field(None, ge=0, le=100)
    total_rooms: Optional[int] = Field(None, ge=1)
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=2000)
    floor: Optional[int] = None
    view_type: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None


class RoomResponse(BaseResponseSchema):
    hostel_id: str
    room_number: str
    room_type: RoomType
    capacity: int
    bed_configuration: Optional[str] = None
    total_beds: int
    price_per_night: Money
    weekly_discount: Money
    monthly_discount: Money
    total_rooms: int
    available_rooms: int
    amenities: List[str]
    images: List[str]
    description: Optional[str] = None
    floor: Optional[int] = None
    view_type: str
    is_active: bool
