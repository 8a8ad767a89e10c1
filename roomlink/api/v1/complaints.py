"""Complaint filing and handling endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from roomlink.api.deps import get_complaint_service, get_current_principal, get_pagination
from roomlink.api.responses import attachment, ok, paginated
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Principal
from roomlink.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from roomlink.schemas.common import PaginatedResponse, SuccessResponse
from roomlink.schemas.complaint import (
    ComplaintCreate,
    ComplaintDetailResponse,
    ComplaintEscalate,
    ComplaintNoteCreate,
    ComplaintNoteResponse,
    ComplaintReassign,
    ComplaintResolve,
    ComplaintResponse,
    ComplaintStatusUpdate,
)
from roomlink.services.complaint_service import ComplaintService

router = APIRouter(prefix="/complaints", tags=["Complaints"])


@router.post("", response_model=SuccessResponse[ComplaintResponse], status_code=status.HTTP_201_CREATED)
def create_complaint(
    payload: ComplaintCreate,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint = service.create_complaint(principal, payload)
    return ok(ComplaintResponse.model_validate(complaint), "Complaint filed")


@router.get("", response_model=PaginatedResponse[ComplaintResponse])
def list_complaints(
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    priority: Optional[ComplaintPriority] = None,
    category: Optional[ComplaintCategory] = None,
    hostel_id: Optional[str] = None,
    params: PaginationParams = Depends(get_pagination),
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    result = service.list_complaints(
        principal, params,
        status=status_filter, priority=priority, category=category, hostel_id=hostel_id,
    )
    return paginated(result, ComplaintResponse)


# Declared before "/{complaint_id}" so "export" is not captured as an id.
@router.get("/export")
def export_complaints(
    fmt: str = Query("csv", alias="format"),
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    priority: Optional[ComplaintPriority] = None,
    hostel_id: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    return attachment(*service.export_complaints(
        principal, fmt, status=status_filter, priority=priority, hostel_id=hostel_id,
    ))


@router.get("/{complaint_id}", response_model=SuccessResponse[ComplaintDetailResponse])
def get_complaint(
    complaint_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint, notes = service.get_complaint(principal, complaint_id)
    detail = ComplaintDetailResponse.model_validate(complaint).model_copy(
        update={"notes": [ComplaintNoteResponse.model_validate(note) for note in notes]}
    )
    return ok(detail)


@router.patch("/{complaint_id}/status", response_model=SuccessResponse[ComplaintResponse])
def update_status(
    complaint_id: str,
    payload: ComplaintStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint = service.update_status(principal, complaint_id, payload.status)
    return ok(ComplaintResponse.model_validate(complaint), f"Complaint marked {complaint.status.value}")


@router.patch("/{complaint_id}/resolve", response_model=SuccessResponse[ComplaintResponse])
def resolve(
    complaint_id: str,
    payload: ComplaintResolve,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint = service.resolve(principal, complaint_id, payload)
    return ok(ComplaintResponse.model_validate(complaint), "Complaint resolved")


@router.patch("/{complaint_id}/escalate", response_model=SuccessResponse[ComplaintResponse])
def escalate(
    complaint_id: str,
    payload: ComplaintEscalate,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint = service.escalate(principal, complaint_id, payload.priority, payload.reason)
    return ok(ComplaintResponse.model_validate(complaint), f"Complaint escalated to {complaint.priority.value}")


@router.patch("/{complaint_id}/reassign", response_model=SuccessResponse[ComplaintResponse])
def reassign(
    complaint_id: str,
    payload: ComplaintReassign,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    complaint = service.reassign(principal, complaint_id, payload.staff_id)
    return ok(ComplaintResponse.model_validate(complaint), "Complaint reassigned")


@router.post(
    "/{complaint_id}/notes",
    response_model=SuccessResponse[ComplaintNoteResponse],
    status_code=status.HTTP_201_CREATED,
)
def add_note(
    complaint_id: str,
    payload: ComplaintNoteCreate,
    principal: Principal = Depends(get_current_principal),
    service: ComplaintService = Depends(get_complaint_service),
):
    note = service.add_note(principal, complaint_id, payload.note)
    return ok(ComplaintNoteResponse.model_validate(note), "Note added")
