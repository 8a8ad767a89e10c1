"""Hostel listings and their nested room endpoints."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from roomlink.api.deps import (
    get_availability_checker,
    get_current_principal,
    get_hostel_service,
    get_optional_principal,
    get_pagination,
)
from roomlink.api.responses import ok, paginated
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Principal
from roomlink.schemas.booking import AvailabilityResponse
from roomlink.schemas.common import PaginatedResponse, SuccessResponse
from roomlink.schemas.hostel import (
    HostelCreate,
    HostelResponse,
    HostelUpdate,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)
from roomlink.services.availability import AvailabilityChecker
from roomlink.services.hostel_service import HostelService
from roomlink.utils.datetime_utils import to_naive_utc

router = APIRouter(prefix="/hostels", tags=["Hostels"])


@router.get("", response_model=PaginatedResponse[HostelResponse])
def list_hostels(
    city: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    amenity: Optional[str] = None,
    owner_id: Optional[str] = None,
    params: PaginationParams = Depends(get_pagination),
    principal: Optional[Principal] = Depends(get_optional_principal),
    service: HostelService = Depends(get_hostel_service),
):
    result = service.list_hostels(
        params, principal, city=city, min_rating=min_rating, amenity=amenity, owner_id=owner_id
    )
    return paginated(result, HostelResponse, HostelResponse.from_model)


@router.post("", response_model=SuccessResponse[HostelResponse], status_code=status.HTTP_201_CREATED)
def create_hostel(
    payload: HostelCreate,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    hostel = service.create_hostel(principal, payload)
    return ok(HostelResponse.from_model(hostel), "Hostel created")


@router.get("/{hostel_id}", response_model=SuccessResponse[HostelResponse])
def get_hostel(
    hostel_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    service: HostelService = Depends(get_hostel_service),
):
    return ok(HostelResponse.from_model(service.get_hostel(hostel_id, principal)))


@router.put("/{hostel_id}", response_model=SuccessResponse[HostelResponse])
def update_hostel(
    hostel_id: str,
    payload: HostelUpdate,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    hostel = service.update_hostel(principal, hostel_id, payload)
    return ok(HostelResponse.from_model(hostel), "Hostel updated")


@router.delete("/{hostel_id}", response_model=SuccessResponse[HostelResponse])
def delete_hostel(
    hostel_id: str,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    hostel = service.delete_hostel(principal, hostel_id)
    return ok(HostelResponse.from_model(hostel), "Hostel deactivated")


# ==================== Rooms ====================


@router.get("/{hostel_id}/rooms", response_model=SuccessResponse[List[RoomResponse]])
def list_rooms(
    hostel_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    service: HostelService = Depends(get_hostel_service),
):
    rooms = service.list_rooms(hostel_id, principal)
    return ok([RoomResponse.model_validate(room) for room in rooms])


@router.post("/{hostel_id}/rooms", response_model=SuccessResponse[RoomResponse], status_code=status.HTTP_201_CREATED)
def create_room(
    hostel_id: str,
    payload: RoomCreate,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    room = service.create_room(principal, hostel_id, payload)
    return ok(RoomResponse.model_validate(room), "Room created")


@router.get("/{hostel_id}/rooms/{room_id}", response_model=SuccessResponse[RoomResponse])
def get_room(
    hostel_id: str,
    room_id: str,
    service: HostelService = Depends(get_hostel_service),
):
    return ok(RoomResponse.model_validate(service.get_room(hostel_id, room_id)))


@router.patch("/{hostel_id}/rooms/{room_id}", response_model=SuccessResponse[RoomResponse])
def update_room(
    hostel_id: str,
    room_id: str,
    payload: RoomUpdate,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    room = service.update_room(principal, hostel_id, room_id, payload)
    return ok(RoomResponse.model_validate(room), "Room updated")


@router.delete("/{hostel_id}/rooms/{room_id}", response_model=SuccessResponse[RoomResponse])
def delete_room(
    hostel_id: str,
    room_id: str,
    principal: Principal = Depends(get_current_principal),
    service: HostelService = Depends(get_hostel_service),
):
    room = service.delete_room(principal, hostel_id, room_id)
    return ok(RoomResponse.model_validate(room), "Room deactivated")


@router.get("/{hostel_id}/rooms/{room_id}/availability", response_model=SuccessResponse[AvailabilityResponse])
def room_availability(
    hostel_id: str,
    room_id: str,
    check_in_date: datetime,
    check_out_date: datetime,
    rooms: int = Query(1, ge=1, le=20),
    checker: AvailabilityChecker = Depends(get_availability_checker),
):
    availability = checker.check_room_availability(
        hostel_id, room_id, to_naive_utc(check_in_date), to_naive_utc(check_out_date), rooms
    )
    return ok(AvailabilityResponse.model_validate(availability))
