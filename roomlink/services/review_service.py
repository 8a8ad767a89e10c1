"""Hostel reviews and the rating aggregate kept on each hostel."""

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roomlink.core.events import ADMIN_CHANNEL, EventPublisher, host_channel
from roomlink.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ConflictError,
    DuplicateReviewError,
    HostelNotFoundError,
    InvalidStateError,
    ReviewNotFoundError,
    ValidationError,
)
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Permission, Principal, ensure_permission, has_permission
from roomlink.models.booking import REVIEWABLE_STATUSES
from roomlink.models.hostel import Hostel
from roomlink.models.review import Review, ReviewVote
from roomlink.repositories.base import PaginatedResult
from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.hostel_repository import HostelRepository
from roomlink.repositories.review_repository import REVIEW_SORTS, ReviewRepository, ReviewVoteRepository
from roomlink.schemas.review import ReviewCreate, ReviewUpdate
from roomlink.services.base import BaseService
from roomlink.utils.datetime_utils import Clock, utcnow


class ReviewService(BaseService):

    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None, clock: Clock = utcnow):
        super().__init__(db, publisher, clock)
        self.reviews = ReviewRepository(db)
        self.votes = ReviewVoteRepository(db)
        self.bookings = BookingRepository(db)
        self.hostels = HostelRepository(db)

    def create_review(self, principal: Principal, data: ReviewCreate) -> Review:
        ensure_permission(principal, Permission.REVIEW_CREATE)
        hostel = self._get_hostel(data.hostel_id)

        booking = self.bookings.get_by_id(data.booking_id)
        if booking is None or booking.user_id != principal.user_id:
            raise BookingNotFoundError(data.booking_id)
        if booking.hostel_id != hostel.id:
            raise ValidationError("Booking does not belong to this hostel")
        if booking.status not in REVIEWABLE_STATUSES:
            raise InvalidStateError(
                "You can only review a stay after checking out", booking.status.value
            )
        if self.reviews.get_by_user_and_booking(principal.user_id, booking.id):
            raise DuplicateReviewError(booking.id)

        review = Review(user_id=principal.user_id, helpful_count=0, **data.model_dump())
        try:
            with self.transaction():
                self.reviews.add(review)
                self._recompute_rating(hostel)
        except IntegrityError as exc:
            # Concurrent submission for the same booking
            raise DuplicateReviewError(booking.id) from exc

        self._logger.info(f"Review created for hostel {hostel.id}", extra={"user_id": principal.user_id})
        self._publish(
            [ADMIN_CHANNEL, host_channel(hostel.owner_id)],
            "newReview",
            {"review_id": review.id, "hostel_id": hostel.id, "rating": review.rating},
        )
        return review

    def list_hostel_reviews(
        self,
        hostel_id: str,
        params: PaginationParams,
        sort: str = "newest",
        min_rating: Optional[int] = None,
    ) -> PaginatedResult[Review]:
        if sort not in REVIEW_SORTS:
            raise ValidationError(
                f"Unknown sort '{sort}'", details={"allowed": sorted(REVIEW_SORTS)}
            )
        self._get_hostel(hostel_id)
        return self.reviews.list_for_hostel(hostel_id, params, sort, min_rating)

    def update_review(self, principal: Principal, review_id: str, data: ReviewUpdate) -> Review:
        review = self._get(review_id)
        if review.user_id != principal.user_id:
            raise AuthorizationError("You can only edit your own reviews")

        with self.transaction():
            for field, value in data.changes().items():
                if field == "rating" and value is None:
                    continue
                setattr(review, field, value)
            self._recompute_rating(self._get_hostel(review.hostel_id))
        return review

    def reply_to_review(self, principal: Principal, review_id: str, text: str) -> Review:
        ensure_permission(principal, Permission.REVIEW_REPLY)
        review = self._get(review_id)
        hostel = self._get_hostel(review.hostel_id)
        if hostel.owner_id != principal.user_id and not principal.is_privileged:
            raise AuthorizationError("Only the hostel owner can reply to its reviews")

        with self.transaction():
            review.owner_response = text
            review.responded_at = self.clock()
        return review

    def mark_helpful(self, principal: Principal, review_id: str) -> Review:
        review = self._get(review_id)
        if review.user_id == principal.user_id:
            raise ValidationError("You cannot mark your own review as helpful")
        if self.votes.has_voted(review.id, principal.user_id):
            raise ConflictError("You already found this review helpful", details={"review_id": review.id})

        try:
            with self.transaction():
                self.votes.add(ReviewVote(review_id=review.id, user_id=principal.user_id, voted_at=self.clock()))
                review.helpful_count = (review.helpful_count or 0) + 1
        except IntegrityError as exc:
            raise ConflictError("You already found this review helpful", details={"review_id": review.id}) from exc
        return review

    def delete_review(self, principal: Principal, review_id: str) -> None:
        review = self._get(review_id)
        if review.user_id != principal.user_id and not has_permission(principal, Permission.REVIEW_MODERATE):
            raise AuthorizationError("You can only delete your own reviews")

        hostel = self._get_hostel(review.hostel_id)
        with self.transaction():
            self.votes.delete_for_review(review.id)
            self.reviews.delete(review)
            self._recompute_rating(hostel)
        self._logger.info(f"Review {review_id} deleted", extra={"user_id": principal.user_id})

    def _recompute_rating(self, hostel: Hostel) -> None:
        """Refresh the hostel aggregate from every stored review."""
        self.db.flush()
        average, count = self.reviews.rating_stats(hostel.id)
        hostel.average_rating = round(average, 2) if average is not None else 0.0
        hostel.total_reviews = count

    def _get(self, review_id: str) -> Review:
        review = self.reviews.get_by_id(review_id)
        if review is None:
            raise ReviewNotFoundError(review_id)
        return review

    def _get_hostel(self, hostel_id: str) -> Hostel:
        hostel = self.hostels.get_by_id(hostel_id)
        if hostel is None:
            raise HostelNotFoundError(hostel_id)
        return hostel
