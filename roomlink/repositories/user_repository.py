"""User repository."""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from roomlink.models.user import User
from roomlink.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):

    def __init__(self, db: Session):
        super().__init__(User, db)

    def get_by_email(self, email: str) -> Optional[User]:
        query = select(User).where(User.email == email.strip().lower())
        return self.db.execute(query).scalar_one_or_none()

    def email_exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def count_by_role(self) -> Dict[str, int]:
        query = select(User.role, func.count(User.id)).group_by(User.role)
        return {role.value: count for role, count in self.db.execute(query).all()}

    def count_created_between(self, start: Optional[datetime], end: Optional[datetime]) -> int:
        query = select(func.count(User.id))
        if start:
            query = query.where(User.created_at >= start)
        if end:
            query = query.where(User.created_at < end)
        return self.db.execute(query).scalar_one()

    def daily_signups(self, since: datetime) -> List[Dict[str, object]]:
        """New users per day since ``since``, split by role."""
        day = func.date(User.created_at).label("day")
        query = (
            select(day, User.role, func.count(User.id))
            .where(User.created_at >= since)
            .group_by(day, User.role)
            .order_by(day)
        )
        days: Dict[str, Dict[str, object]] = {}
        for value, role, count in self.db.execute(query).all():
            row = days.setdefault(str(value), {"date": str(value), "new_users": 0, "by_role": {}})
            row["new_users"] += count
            row["by_role"][role.value] = count
        return list(days.values())

