"""
Guest complaints and their handling workflow.

Status transitions::

    open        -> in_progress | resolved | closed
    in_progress -> resolved | closed
    resolved    -> closed

Notes are append-only.
"""

from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from roomlink.core.events import ADMIN_CHANNEL, STAFF_CHANNEL, EventPublisher, host_channel, user_channel
from roomlink.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ComplaintNotFoundError,
    HostelNotFoundError,
    InvalidStateError,
    UserNotFoundError,
    ValidationError,
)
from roomlink.core.notifications import Notifier, send_safely
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal, ensure_permission, has_permission
from roomlink.models.complaint import Complaint, ComplaintNote
from roomlink.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus, UserRole
from roomlink.repositories.base import PaginatedResult
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.complaint_repository import ComplaintNoteRepository, ComplaintRepository
from roomlink.repositories.hostel_repository import HostelRepository
from roomlink.repositories.user_repository import UserRepository
from roomlink.schemas.complaint import ComplaintCreate, ComplaintResolve
from roomlink.services.base import BaseService
from roomlink.services.export import ensure_export_format, export_filename, render_complaints
from roomlink.utils.datetime_utils import Clock, utcnow

ALLOWED_TRANSITIONS: Dict[ComplaintStatus, FrozenSet[ComplaintStatus]] = {
    ComplaintStatus.OPEN: frozenset({
        ComplaintStatus.IN_PROGRESS,
        ComplaintStatus.RESOLVED,
        ComplaintStatus.CLOSED,
    }),
    ComplaintStatus.IN_PROGRESS: frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED}),
    ComplaintStatus.RESOLVED: frozenset({ComplaintStatus.CLOSED}),
    ComplaintStatus.CLOSED: frozenset(),
}

HANDLER_ROLES = (UserRole.STAFF, UserRole.ADMIN, UserRole.SUPER_ADMIN)


def can_transition(current: ComplaintStatus, target: ComplaintStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class ComplaintService(BaseService):

    def __init__(
        self,
        db: Session,
        publisher: Optional[EventPublisher] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
    ):
        super().__init__(db, publisher, clock)
        self.notifier = notifier
        self.complaints = ComplaintRepository(db)
        self.notes = ComplaintNoteRepository(db)
        self.bookings = BookingRepository(db)
        self.hostels = HostelRepository(db)
        self.users = UserRepository(db)

    # ------------------------------------------------------------------
    # Guest side
    # ------------------------------------------------------------------

    def create_complaint(self, principal: Principal, data: ComplaintCreate) -> Complaint:
        ensure_permission(principal, Permission.COMPLAINT_CREATE)
        hostel = self.hostels.get_by_id(data.hostel_id)
        if hostel is None:
            raise HostelNotFoundError(data.hostel_id)
        if data.booking_id:
            booking = self.bookings.get_by_id(data.booking_id)
            if booking is None or booking.user_id != principal.user_id:
                raise BookingNotFoundError(data.booking_id)
            if booking.hostel_id != hostel.id:
                raise ValidationError("Booking does not belong to this hostel")

        complaint = Complaint(
            user_id=principal.user_id,
            status=ComplaintStatus.OPEN,
            is_escalated=False,
            **data.model_dump(),
        )
        with self.transaction():
            self.complaints.add(complaint)

        self._logger.info(f"Complaint filed against hostel {hostel.id}", extra={"user_id": principal.user_id})
        self._publish(
            [ADMIN_CHANNEL, STAFF_CHANNEL, host_channel(hostel.owner_id)],
            "newComplaint",
            self._event_payload(complaint),
        )
        return complaint

    def list_complaints(
        self,
        principal: Principal,
        params: PaginationParams,
        status: Optional[ComplaintStatus] = None,
        priority: Optional[ComplaintPriority] = None,
        category: Optional[ComplaintCategory] = None,
        hostel_id: Optional[str] = None,
    ) -> PaginatedResult[Complaint]:
        user_id: Optional[str] = None
        hostel_ids: Optional[List[str]] = [hostel_id] if hostel_id else None
        if not has_permission(principal, Permission.COMPLAINT_VIEW_ALL):
            if principal.role == UserRole.HOST:
                owned = self.hostels.ids_owned_by(principal.user_id)
                hostel_ids = [hid for hid in owned if not hostel_id or hid == hostel_id]
            else:
                user_id = principal.user_id
        return self.complaints.search(
            params, user_id=user_id, hostel_ids=hostel_ids,
            status=status, priority=priority, category=category,
        )

    def export_complaints(
        self,
        principal: Principal,
        fmt: str,
        status: Optional[ComplaintStatus] = None,
        priority: Optional[ComplaintPriority] = None,
        hostel_id: Optional[str] = None,
    ) -> Tuple[bytes, str, str]:
        """Render the complaint report for staff and admins; returns (content, media type, filename)."""
        ensure_permission(principal, Permission.COMPLAINT_VIEW_ALL)
        fmt = ensure_export_format(fmt)
        complaints = self.complaints.list_for_export(status, priority, hostel_id)
        content, media_type = render_complaints(complaints, fmt)
        filename = export_filename("complaints", fmt, self.clock())
        self._logger.info(f"Complaints report generated: {filename}", extra={"user_id": principal.user_id})
        return content, media_type, filename

    def get_complaint(self, principal: Principal, complaint_id: str) -> Tuple[Complaint, List[ComplaintNote]]:
        complaint = self._get(complaint_id)
        if not self._can_view(principal, complaint):
            raise AuthorizationError("You are not allowed to view this complaint")
        return complaint, self.notes.list_for_complaint(complaint.id)

    # ------------------------------------------------------------------
    # Handling
    # ------------------------------------------------------------------

    def update_status(self, principal: Principal, complaint_id: str, status: ComplaintStatus) -> Complaint:
        ensure_permission(principal, Permission.COMPLAINT_HANDLE)
        complaint = self._get(complaint_id)
        self._ensure_transition(complaint, status)

        with self.transaction():
            complaint.status = status
            complaint.handled_by = complaint.handled_by or principal.user_id
            if status == ComplaintStatus.RESOLVED and complaint.resolution_date is None:
                complaint.resolution_date = self.clock()

        self._after_update(complaint, "complaintStatusChanged")
        return complaint

    def resolve(self, principal: Principal, complaint_id: str, data: ComplaintResolve) -> Complaint:
        ensure_permission(principal, Permission.COMPLAINT_HANDLE)
        complaint = self._get(complaint_id)
        self._ensure_transition(complaint, ComplaintStatus.RESOLVED)

        with self.transaction():
            complaint.status = ComplaintStatus.RESOLVED
            complaint.handled_by = complaint.handled_by or principal.user_id
            complaint.resolution_note = data.resolution_note
            complaint.resolution_date = self.clock()
            if data.satisfaction_rating is not None:
                complaint.satisfaction_rating = data.satisfaction_rating
            if data.refund_amount is not None:
                complaint.refund_amount = data.refund_amount

        self._after_update(complaint, "complaintResolved")
        return complaint

    def escalate(
        self,
        principal: Principal,
        complaint_id: str,
        priority: ComplaintPriority,
        reason: Optional[str] = None,
    ) -> Complaint:
        ensure_permission(principal, Permission.COMPLAINT_HANDLE)
        complaint = self._get(complaint_id)
        if complaint.status in (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED):
            raise InvalidStateError("Resolved or closed complaints cannot be escalated", complaint.status.value)
        if priority.rank <= complaint.priority.rank:
            raise ValidationError(
                f"Escalation must raise the priority above '{complaint.priority.value}'"
            )

        with self.transaction():
            complaint.priority = priority
            complaint.is_escalated = True
            complaint.escalated_at = self.clock()
            note = f"Escalated to {priority.value}"
            self.notes.add(ComplaintNote(
                complaint_id=complaint.id,
                note=f"{note}: {reason}" if reason else note,
                added_by=principal.user_id,
                added_at=self.clock(),
            ))

        self._after_update(complaint, "complaintEscalated")
        return complaint

    def reassign(self, principal: Principal, complaint_id: str, staff_id: str) -> Complaint:
        ensure_permission(principal, Permission.COMPLAINT_REASSIGN)
        complaint = self._get(complaint_id)
        if complaint.status == ComplaintStatus.CLOSED:
            raise InvalidStateError("Closed complaints cannot be reassigned", complaint.status.value)

        assignee = self.users.get_by_id(staff_id)
        if assignee is None:
            raise UserNotFoundError(staff_id)
        if assignee.role not in HANDLER_ROLES:
            raise ValidationError("Complaints can only be assigned to staff or administrators")

        with self.transaction():
            complaint.handled_by = assignee.id

        self._publish(
            [ADMIN_CHANNEL, STAFF_CHANNEL, user_channel(assignee.id)],
            "complaintReassigned",
            self._event_payload(complaint),
        )
        return complaint

    def add_note(self, principal: Principal, complaint_id: str, note: str) -> ComplaintNote:
        ensure_permission(principal, Permission.COMPLAINT_HANDLE)
        complaint = self._get(complaint_id)
        entry = ComplaintNote(
            complaint_id=complaint.id,
            note=note,
            added_by=principal.user_id,
            added_at=self.clock(),
        )
        with self.transaction():
            self.notes.add(entry)
        return entry

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, complaint_id: str) -> Complaint:
        complaint = self.complaints.get_by_id(complaint_id)
        if complaint is None:
            raise ComplaintNotFoundError(complaint_id)
        return complaint

    def _can_view(self, principal: Principal, complaint: Complaint) -> bool:
        if complaint.user_id == principal.user_id or has_permission(principal, Permission.COMPLAINT_VIEW_ALL):
            return True
        hostel = self.hostels.get_by_id(complaint.hostel_id)
        return hostel is not None and hostel.owner_id == principal.user_id

    @staticmethod
    def _ensure_transition(complaint: Complaint, target: ComplaintStatus) -> None:
        if not can_transition(complaint.status, target):
            raise InvalidStateError(
                f"Cannot move complaint from {complaint.status.value} to {target.value}",
                complaint.status.value,
            )

    def _after_update(self, complaint: Complaint, event: str) -> None:
        self._logger.info(f"Complaint {complaint.id} now {complaint.status.value}")
        self._publish(
            [ADMIN_CHANNEL, STAFF_CHANNEL, user_channel(complaint.user_id)],
            event,
            self._event_payload(complaint),
        )
        if self.notifier is None:
            return
        owner = self.users.get_by_id(complaint.user_id)
        if owner is not None:
            send_safely(
                self.notifier.complaint_updated,
                owner.email,
                self._event_payload(complaint),
                context={"complaint_id": complaint.id},
            )

    @staticmethod
    def _event_payload(complaint: Complaint) -> Dict[str, object]:
        return {
            "complaint_id": complaint.id,
            "hostel_id": complaint.hostel_id,
            "user_id": complaint.user_id,
            "title": complaint.title,
            "status": complaint.status.value,
            "priority": complaint.priority.value,
            "is_escalated": complaint.is_escalated,
            "handled_by": complaint.handled_by,
        }
