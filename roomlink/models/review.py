"""Guest reviews of hostels."""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roomlink.db.base import Base
from roomlink.models.base import BaseModel, UUIDMixin
from roomlink.utils.datetime_utils import utcnow

SUB_RATING_FIELDS = ("cleanliness", "comfort", "staff", "value", "location")


class Review(BaseModel):
    __tablename__ = "reviews"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hostel_id: Mapped[str] = mapped_column(
        ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id: Mapped[str] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(1000))

    cleanliness: Mapped[Optional[int]] = mapped_column(Integer)
    comfort: Mapped[Optional[int]] = mapped_column(Integer)
    staff: Mapped[Optional[int]] = mapped_column(Integer)
    value: Mapped[Optional[int]] = mapped_column(Integer)
    location: Mapped[Optional[int]] = mapped_column(Integer)

    owner_response: Mapped[Optional[str]] = mapped_column(Text)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "booking_id", name="uq_review_user_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )


class ReviewVote(UUIDMixin, Base):
    """A user's helpful vote. One per user and review."""

    __tablename__ = "review_votes"

    review_id: Mapped[str] = mapped_column(
        ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    voted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_review_vote_user"),
    )
