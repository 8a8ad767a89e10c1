"""Review repository."""

from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.review import Review, ReviewVote
from roomlink.repositories.base import BaseRepository, PaginatedResult

REVIEW_SORTS = {
    "newest": Review.created_at.desc(),
    "oldest": Review.created_at.asc(),
    "rating_high": Review.rating.desc(),
    "rating_low": Review.rating.asc(),
    "helpful": Review.helpful_count.desc(),
}


class ReviewRepository(BaseRepository[Review]):

    def __init__(self, db: Session):
        super().__init__(Review, db)

    def get_by_user_and_booking(self, user_id: str, booking_id: str) -> Optional[Review]:
        query = select(Review).where(
            and_(Review.user_id == user_id, Review.booking_id == booking_id)
        )
        return self.db.execute(query).scalar_one_or_none()

    def rating_stats(self, hostel_id: str) -> Tuple[Optional[float], int]:
        """Mean rating and review count over every review of a hostel."""
        return self.rating_stats_for([hostel_id])

    def rating_stats_for(self, hostel_ids: Optional[List[str]] = None) -> Tuple[Optional[float], int]:
        query = select(func.avg(Review.rating), func.count(Review.id))
        if hostel_ids is not None:
            query = query.where(Review.hostel_id.in_(hostel_ids))
        average, count = self.db.execute(query).one()
        return (float(average) if average is not None else None), count

    def list_for_hostel(
        self,
        hostel_id: str,
        params: PaginationParams,
        sort: str = "newest",
        min_rating: Optional[int] = None,
    ) -> PaginatedResult[Review]:
        query = select(Review).where(Review.hostel_id == hostel_id)
        if min_rating:
            query = query.where(Review.rating >= min_rating)
        query = query.order_by(REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]))
        return self.paginate(query, params)


class ReviewVoteRepository(BaseRepository[ReviewVote]):

    def __init__(self, db: Session):
        super().__init__(ReviewVote, db)

    def has_voted(self, review_id: str, user_id: str) -> bool:
        query = select(ReviewVote.id).where(
            and_(ReviewVote.review_id == review_id, ReviewVote.user_id == user_id)
        )
        return self.db.execute(query).first() is not None

    def delete_for_review(self, review_id: str) -> None:
        self.db.execute(delete(ReviewVote).where(ReviewVote.review_id == review_id))
