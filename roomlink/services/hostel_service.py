"""
Hostel listings and their rooms.
"""

from typing import Optional

from sqlalchemy.orm import Session

from roomlink.config.settings import Settings
from roomlink.core.events import ADMIN_CHANNEL, EventPublisher
from roomlink.core.exceptions import (
    AuthorizationError,
    DuplicateEntryError,
    ErrorCode,
    HostelNotFoundError,
    RoomNotFoundError,
    ValidationError,
)
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal, ensure_permission, has_permission
from roomlink.models.enums import HostelStatus
from roomlink.models.hostel import Hostel, Room
from roomlink.repositories.base import PaginatedResult
from roomlink.repositories.hostel_repository import HostelRepository, RoomRepository
from roomlink.schemas.hostel import HostelCreate, HostelUpdate, RoomCreate, RoomUpdate
from roomlink.services.base import BaseService
from roomlink.utils.datetime_utils import Clock, utcnow


class HostelService(BaseService):

    def __init__(
        self,
        db: Session,
        settings: Settings,
        publisher: Optional[EventPublisher] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(db, publisher, clock)
        self.settings = settings
        self.hostels = HostelRepository(db)
        self.rooms = RoomRepository(db)

    # ------------------------------------------------------------------
    # Hostels
    # ------------------------------------------------------------------

    def create_hostel(self, principal: Principal, data: HostelCreate) -> Hostel:
        ensure_permission(principal, Permission.HOSTEL_CREATE)

        owned = self.hostels.count_live_by_owner(principal.user_id)
        if owned >= self.settings.MAX_HOSTELS_PER_OWNER:
            raise ValidationError(
                f"You can list at most {self.settings.MAX_HOSTELS_PER_OWNER} hostels",
                error_code=ErrorCode.HOSTEL_LIMIT_REACHED,
            )
        self._check_stay_limits(data.policies.min_stay, data.policies.max_stay)

        hostel = Hostel(owner_id=principal.user_id, **self._hostel_columns(data.model_dump()))
        with self.transaction():
            self.hostels.add(hostel)

        self._logger.info(f"Hostel created: {hostel.id}", extra={"user_id": principal.user_id})
        self._publish([ADMIN_CHANNEL], "newHostel", {"hostel_id": hostel.id, "name": hostel.name})
        return hostel

    def list_hostels(
        self,
        params: PaginationParams,
        principal: Optional[Principal] = None,
        city: Optional[str] = None,
        min_rating: Optional[float] = None,
        amenity: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> PaginatedResult[Hostel]:
        """Public search sees Active hostels; privileged callers and owners see everything they own."""
        statuses = [HostelStatus.ACTIVE]
        if principal and (self._manages_any(principal) or (owner_id and owner_id == principal.user_id)):
            statuses = None
        return self.hostels.search(
            params, city=city, min_rating=min_rating, amenity=amenity,
            owner_id=owner_id, statuses=statuses,
        )

    def get_hostel(self, hostel_id: str, principal: Optional[Principal] = None) -> Hostel:
        hostel = self.hostels.get_by_id(hostel_id)
        if hostel is None:
            raise HostelNotFoundError(hostel_id)
        if hostel.account_status == HostelStatus.DEACTIVATED and not self._can_manage(principal, hostel):
            raise HostelNotFoundError(hostel_id)
        return hostel

    def update_hostel(self, principal: Principal, hostel_id: str, data: HostelUpdate) -> Hostel:
        hostel = self._get_managed_hostel(principal, hostel_id)
        changes = data.changes()

        if "account_status" in changes and not self._manages_any(principal):
            raise ValidationError("Only administrators can change the hostel status")
        if "policies" in changes and changes["policies"] is not None:
            policies = changes["policies"]
            self._check_stay_limits(policies["min_stay"], policies["max_stay"])

        with self.transaction():
            for column, value in self._hostel_columns(changes).items():
                setattr(hostel, column, value)

        self._logger.info(f"Hostel updated: {hostel.id}", extra={"user_id": principal.user_id})
        return hostel

    def delete_hostel(self, principal: Principal, hostel_id: str) -> Hostel:
        """Soft delete: the listing is deactivated, its bookings are kept."""
        hostel = self._get_managed_hostel(principal, hostel_id)
        with self.transaction():
            hostel.account_status = HostelStatus.DEACTIVATED
        self._logger.info(f"Hostel deactivated: {hostel.id}", extra={"user_id": principal.user_id})
        return hostel

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def list_rooms(self, hostel_id: str, principal: Optional[Principal] = None):
        hostel = self.get_hostel(hostel_id, principal)
        include_inactive = self._can_manage(principal, hostel)
        return self.rooms.list_by_hostel(hostel.id, include_inactive=include_inactive)

    def get_room(self, hostel_id: str, room_id: str) -> Room:
        room = self.rooms.get_in_hostel(hostel_id, room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def create_room(self, principal: Principal, hostel_id: str, data: RoomCreate) -> Room:
        hostel = self._get_managed_hostel(principal, hostel_id)
        if self.rooms.get_by_number(hostel.id, data.room_number):
            raise DuplicateEntryError(
                f"Room {data.room_number} already exists in this hostel", field="room_number"
            )

        room = Room(hostel_id=hostel.id, available_rooms=data.total_rooms, **data.model_dump())
        with self.transaction():
            self.rooms.add(room)
        self._logger.info(f"Room created: {room.id} in hostel {hostel.id}")
        return room

    def update_room(self, principal: Principal, hostel_id: str, room_id: str, data: RoomUpdate) -> Room:
        self._get_managed_hostel(principal, hostel_id)
        room = self.get_room(hostel_id, room_id)
        changes = data.changes()

        new_number = changes.get("room_number")
        if new_number and new_number != room.room_number and self.rooms.get_by_number(hostel_id, new_number):
            raise DuplicateEntryError(
                f"Room {new_number} already exists in this hostel", field="room_number"
            )

        with self.transaction():
            if "total_rooms" in changes and changes["total_rooms"] is not None:
                delta = changes["total_rooms"] - room.total_rooms
                room.available_rooms = max(0, room.available_rooms + delta)
            for field, value in changes.items():
                if value is not None:
                    setattr(room, field, value)
        return room

    def delete_room(self, principal: Principal, hostel_id: str, room_id: str) -> Room:
        self._get_managed_hostel(principal, hostel_id)
        room = self.get_room(hostel_id, room_id)
        with self.transaction():
            room.is_active = False
        self._logger.info(f"Room deactivated: {room.id}")
        return room

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_managed_hostel(self, principal: Principal, hostel_id: str) -> Hostel:
        ensure_permission(principal, Permission.HOSTEL_MANAGE)
        hostel = self.get_hostel(hostel_id, principal)
        if not self._can_manage(principal, hostel):
            raise AuthorizationError("Only the hostel owner can manage this hostel")
        return hostel

    @staticmethod
    def _manages_any(principal: Principal) -> bool:
        return has_permission(principal, Permission.HOSTEL_MANAGE_ANY)

    def _can_manage(self, principal: Optional[Principal], hostel: Hostel) -> bool:
        if principal is None:
            return False
        return principal.user_id == hostel.owner_id or self._manages_any(principal)

    @staticmethod
    def _check_stay_limits(min_stay: int, max_stay: int) -> None:
        if min_stay > max_stay:
            raise ValidationError("Minimum stay cannot exceed maximum stay")

    @staticmethod
    def _hostel_columns(data: dict) -> dict:
        """Flatten request fields into model columns."""
        columns = {}
        for key, value in data.items():
            if key == "address" and value is not None:
                columns["address"] = value
                columns["city"] = value["city"]
            elif key == "coordinates":
                if value is not None:
                    columns["longitude"] = value["longitude"]
                    columns["latitude"] = value["latitude"]
            elif key == "policies":
                if value is not None:
                    columns["cancellation_policy"] = value["cancellation"]
                    columns["cancellation_days"] = value["cancellation_days"]
                    columns["min_stay"] = value["min_stay"]
                    columns["max_stay"] = value["max_stay"]
            elif value is not None:
                columns[key] = value
        return columns
