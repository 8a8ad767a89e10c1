"""User accounts."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.models.base import BaseModel, enum_column
from roomlink.models.enums import StaffType, UserAccountStatus, UserRole


class User(BaseModel):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole), nullable=False, default=UserRole.USER, index=True
    )
    staff_type: Mapped[Optional[StaffType]] = mapped_column(enum_column(StaffType))

    account_status: Mapped[UserAccountStatus] = mapped_column(
        enum_column(UserAccountStatus), nullable=False, default=UserAccountStatus.ACTIVE
    )
    login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lockout_until: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)
