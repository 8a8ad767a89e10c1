"""
Room availability.

A room row carries ``total_rooms`` identical units. Units are held by
confirmed and checked-in bookings only; a pending booking holds nothing
until it is confirmed, and an availability check never creates a hold.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from roomlink.core.exceptions import BookingConflictError, InvalidDateRangeError, RoomNotFoundError
from roomlink.models.hostel import Room
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.hostel_repository import RoomRepository
from roomlink.services.pricing import PricingBreakdown, calculate_pricing


@dataclass(frozen=True)
class Availability:
    room_id: str
    check_in_date: datetime
    check_out_date: datetime
    total_units: int
    booked_units: int
    requested_units: int
    pricing: Optional[PricingBreakdown] = None

    @property
    def available_units(self) -> int:
        return max(0, self.total_units - self.booked_units)

    @property
    def is_available(self) -> bool:
        return self.booked_units + self.requested_units <= self.total_units


class AvailabilityChecker:

    def __init__(self, db: Session):
        self.bookings = BookingRepository(db)
        self.rooms = RoomRepository(db)

    def count_overlapping(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> int:
        if check_out <= check_in:
            raise InvalidDateRangeError(check_in, check_out)
        return self.bookings.count_overlapping_units(room_id, check_in, check_out, exclude_booking_id)

    def check(
        self,
        room: Room,
        check_in: datetime,
        check_out: datetime,
        units: int = 1,
        exclude_booking_id: Optional[str] = None,
    ) -> Availability:
        booked = self.count_overlapping(room.id, check_in, check_out, exclude_booking_id)
        return Availability(
            room_id=room.id,
            check_in_date=check_in,
            check_out_date=check_out,
            total_units=room.total_rooms,
            booked_units=booked,
            requested_units=units,
        )

    def lock_and_ensure(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        units: int = 1,
        exclude_booking_id: Optional[str] = None,
    ) -> Room:
        """
        Lock the room row and verify capacity for the stay.

        Must run inside the transaction that then writes the booking, so a
        concurrent writer for the same room waits on the lock and sees this
        booking when it counts.
        """
        room = self.rooms.get_for_update(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        if not self.check(room, check_in, check_out, units, exclude_booking_id).is_available:
            raise BookingConflictError(room_id)
        return room

    def check_room_availability(
        self,
        hostel_id: str,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        units: int = 1,
    ) -> Availability:
        """Read-only availability with a price quote for the requested stay."""
        room = self.rooms.get_in_hostel(hostel_id, room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        result = self.check(room, check_in, check_out, units)
        quote = calculate_pricing(
            room.price_per_night,
            check_in,
            check_out,
            number_of_rooms=units,
            weekly_discount=room.weekly_discount,
            monthly_discount=room.monthly_discount,
        )
        return Availability(
            room_id=result.room_id,
            check_in_date=check_in,
            check_out_date=check_out,
            total_units=result.total_units,
            booked_units=result.booked_units,
            requested_units=units,
            pricing=quote,
        )
