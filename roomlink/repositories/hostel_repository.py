"""Hostel and room repositories."""

from typing import Dict, List, Optional

from sqlalchemy import String, and_, cast, func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.booking import Booking
from roomlink.models.enums import HostelStatus
from roomlink.models.hostel import Hostel, Room
from roomlink.models.review import Review
from roomlink.repositories.base import BaseRepository, PaginatedResult


class HostelRepository(BaseRepository[Hostel]):

    def __init__(self, db: Session):
        super().__init__(Hostel, db)

    def count_live_by_owner(self, owner_id: str) -> int:
        """Hostels of an owner that are not soft-deleted."""
        query = select(func.count(Hostel.id)).where(
            and_(
                Hostel.owner_id == owner_id,
                Hostel.account_status != HostelStatus.DEACTIVATED,
            )
        )
        return self.db.execute(query).scalar_one()

    def search(
        self,
        params: PaginationParams,
        city: Optional[str] = None,
        min_rating: Optional[float] = None,
        amenity: Optional[str] = None,
        owner_id: Optional[str] = None,
        statuses: Optional[List[HostelStatus]] = None,
    ) -> PaginatedResult[Hostel]:
        conditions = []
        if statuses:
            conditions.append(Hostel.account_status.in_(statuses))
        if city:
            conditions.append(func.lower(Hostel.city) == city.strip().lower())
        if min_rating is not None:
            conditions.append(Hostel.average_rating >= min_rating)
        if amenity:
            # JSON list stored as text; match the quoted element
            conditions.append(cast(Hostel.amenities, String).like(f'%"{amenity}"%'))
        if owner_id:
            conditions.append(Hostel.owner_id == owner_id)

        query = select(Hostel)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(Hostel.average_rating.desc(), Hostel.created_at.desc())
        return self.paginate(query, params)

    def ids_owned_by(self, owner_id: str) -> List[str]:
        query = select(Hostel.id).where(Hostel.owner_id == owner_id)
        return list(self.db.execute(query).scalars().all())

    def list_owned_by(self, owner_id: str) -> List[Hostel]:
        query = select(Hostel).where(Hostel.owner_id == owner_id).order_by(Hostel.created_at)
        return list(self.db.execute(query).scalars().all())

    def count_by_status(self) -> Dict[str, int]:
        query = select(Hostel.account_status, func.count(Hostel.id)).group_by(Hostel.account_status)
        return {status.value: count for status, count in self.db.execute(query).all()}

    def top_by_bookings(self, limit: int = 10) -> List[Dict[str, object]]:
        """Hostels ranked by how many bookings they have received."""
        bookings = (
            select(func.count(Booking.id))
            .where(Booking.hostel_id == Hostel.id)
            .correlate(Hostel)
            .scalar_subquery()
            .label("booking_count")
        )
        reviews = (
            select(func.count(Review.id))
            .where(Review.hostel_id == Hostel.id)
            .correlate(Hostel)
            .scalar_subquery()
            .label("review_count")
        )
        query = (
            select(Hostel, bookings, reviews)
            .order_by(bookings.desc(), Hostel.average_rating.desc(), Hostel.name)
            .limit(limit)
        )
        return [
            {
                "hostel_id": hostel.id,
                "name": hostel.name,
                "city": hostel.city,
                "booking_count": booking_count,
                "review_count": review_count,
                "average_rating": hostel.average_rating,
            }
            for hostel, booking_count, review_count in self.db.execute(query).all()
        ]


class RoomRepository(BaseRepository[Room]):

    def __init__(self, db: Session):
        super().__init__(Room, db)

    def get_in_hostel(self, hostel_id: str, room_id: str) -> Optional[Room]:
        query = select(Room).where(and_(Room.id == room_id, Room.hostel_id == hostel_id))
        return self.db.execute(query).scalar_one_or_none()

    def get_by_number(self, hostel_id: str, room_number: str) -> Optional[Room]:
        query = select(Room).where(
            and_(Room.hostel_id == hostel_id, Room.room_number == room_number)
        )
        return self.db.execute(query).scalar_one_or_none()

    def list_by_hostel(self, hostel_id: str, include_inactive: bool = False) -> List[Room]:
        query = select(Room).where(Room.hostel_id == hostel_id)
        if not include_inactive:
            query = query.where(Room.is_active.is_(True))
        return list(self.db.execute(query.order_by(Room.room_number)).scalars().all())

    def total_inventory(self, hostel_ids: List[str]) -> Dict[str, int]:
        """Active room units per hostel."""
        if not hostel_ids:
            return {}
        query = (
            select(Room.hostel_id, func.coalesce(func.sum(Room.total_rooms), 0))
            .where(and_(Room.hostel_id.in_(hostel_ids), Room.is_active.is_(True)))
            .group_by(Room.hostel_id)
        )
        return {hostel_id: int(total) for hostel_id, total in self.db.execute(query).all()}
