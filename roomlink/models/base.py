"""
Model mixins and column helpers.
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from uuid import uuid4

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.db.base import Base
from roomlink.utils.datetime_utils import utcnow


def enum_column(enum_cls: Type[enum.Enum], length: int = 32) -> Enum:
    """Store an enum by value in a portable VARCHAR column."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=length,
    )


class UUIDMixin:
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class BaseModel(UUIDMixin, TimestampMixin, Base):
    __abstract__ = True

    def to_dict(self, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        exclude = exclude or []
        result = {}
        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, enum.Enum):
                value = value.value
            result[column.name] = value
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id}>"
