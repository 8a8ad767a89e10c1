"""Complaint and complaint note repositories."""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.complaint import Complaint, ComplaintNote
from roomlink.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from roomlink.repositories.base import BaseRepository, PaginatedResult


class ComplaintRepository(BaseRepository[Complaint]):

    def __init__(self, db: Session):
        super().__init__(Complaint, db)

    def search(
        self,
        params: PaginationParams,
        user_id: Optional[str] = None,
        hostel_ids: Optional[List[str]] = None,
        status: Optional[ComplaintStatus] = None,
        priority: Optional[ComplaintPriority] = None,
        category: Optional[ComplaintCategory] = None,
        handled_by: Optional[str] = None,
    ) -> PaginatedResult[Complaint]:
        query = select(Complaint)
        if user_id:
            query = query.where(Complaint.user_id == user_id)
        if hostel_ids is not None:
            query = query.where(Complaint.hostel_id.in_(hostel_ids))
        if status:
            query = query.where(Complaint.status == status)
        if priority:
            query = query.where(Complaint.priority == priority)
        if category:
            query = query.where(Complaint.category == category)
        if handled_by:
            query = query.where(Complaint.handled_by == handled_by)
        return self.paginate(query.order_by(Complaint.created_at.desc()), params)

    def list_for_export(
        self,
        status: Optional[ComplaintStatus] = None,
        priority: Optional[ComplaintPriority] = None,
        hostel_id: Optional[str] = None,
    ) -> List[Complaint]:
        query = select(Complaint)
        if status:
            query = query.where(Complaint.status == status)
        if priority:
            query = query.where(Complaint.priority == priority)
        if hostel_id:
            query = query.where(Complaint.hostel_id == hostel_id)
        return list(self.db.execute(query.order_by(Complaint.created_at)).scalars().all())

    def count_by_status(
        self,
        hostel_ids: Optional[List[str]] = None,
        handled_by: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        query = select(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status)
        query = self._scope(query, hostel_ids, handled_by, start, end)
        counts = {status.value: 0 for status in ComplaintStatus}
        for status, count in self.db.execute(query).all():
            counts[status.value] = count
        return counts

    def count_by_priority(self, handled_by: Optional[str] = None) -> Dict[str, int]:
        query = select(Complaint.priority, func.count(Complaint.id)).group_by(Complaint.priority)
        query = self._scope(query, None, handled_by, None, None)
        counts = {priority.value: 0 for priority in ComplaintPriority}
        for priority, count in self.db.execute(query).all():
            counts[priority.value] = count
        return counts

    def recent(self, handled_by: Optional[str] = None, limit: int = 5) -> List[Complaint]:
        query = select(Complaint)
        if handled_by:
            query = query.where(Complaint.handled_by == handled_by)
        query = query.order_by(Complaint.created_at.desc()).limit(limit)
        return list(self.db.execute(query).scalars().all())

    @staticmethod
    def _scope(query, hostel_ids, handled_by, start, end):
        if hostel_ids is not None:
            query = query.where(Complaint.hostel_id.in_(hostel_ids))
        if handled_by:
            query = query.where(Complaint.handled_by == handled_by)
        if start:
            query = query.where(Complaint.created_at >= start)
        if end:
            query = query.where(Complaint.created_at < end)
        return query


class ComplaintNoteRepository(BaseRepository[ComplaintNote]):

    def __init__(self, db: Session):
        super().__init__(ComplaintNote, db)

    def list_for_complaint(self, complaint_id: str) -> List[ComplaintNote]:
        query = (
            select(ComplaintNote)
            .where(ComplaintNote.complaint_id == complaint_id)
            .order_by(ComplaintNote.added_at)
        )
        return list(self.db.execute(query).scalars().all())
