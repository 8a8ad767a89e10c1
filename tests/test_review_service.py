from datetime import timedelta

import pytest

from roomlink.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ConflictError,
    DuplicateReviewError,
    InvalidStateError,
    ValidationError,
)
from roomlink.core.pagination import PaginationParams
from roomlink.models.enums import BookingStatus, UserRole
from roomlink.models.review import ReviewVote
from roomlink.schemas.review import ReviewCreate, ReviewUpdate
from roomlink.services.review_service import ReviewService
from tests.conftest import NOW

STAY = NOW - timedelta(days=10)


@pytest.fixture
def service(db, publisher, clock):
    return ReviewService(db, publisher=publisher, clock=clock)


@pytest.fixture
def stay(make_booking, guest, room):
    return make_booking(guest, room, STAY, status=BookingStatus.CHECKED_OUT)


def review_for(booking, rating=4, **extra):
    return ReviewCreate(hostel_id=booking.hostel_id, booking_id=booking.id, rating=rating, **extra)


class TestCreateReview:

    def test_review_updates_hostel_rating(self, service, publisher, guest, hostel, stay, as_principal):
        review = service.create_review(as_principal(guest), review_for(stay, rating=4, comment="Great stay"))

        assert review.helpful_count == 0
        assert hostel.average_rating == 4.0
        assert hostel.total_reviews == 1
        assert publisher.names() == ["newReview"]

    def test_average_across_reviews(self, service, make_booking, make_user, hostel, room, stay, guest, as_principal):
        other = make_user()
        other_stay = make_booking(other, room, STAY - timedelta(days=5), status=BookingStatus.CHECKED_OUT)

        service.create_review(as_principal(guest), review_for(stay, rating=5))
        service.create_review(as_principal(other), review_for(other_stay, rating=2))

        assert hostel.average_rating == 3.5
        assert hostel.total_reviews == 2

    def test_one_review_per_booking(self, service, guest, stay, as_principal):
        service.create_review(as_principal(guest), review_for(stay))
        with pytest.raises(DuplicateReviewError):
            service.create_review(as_principal(guest), review_for(stay, rating=1))

    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN])
    def test_stay_must_be_finished(self, service, make_booking, guest, room, status, as_principal):
        booking = make_booking(guest, room, STAY, status=status)
        with pytest.raises(InvalidStateError):
            service.create_review(as_principal(guest), review_for(booking))

    def test_cannot_review_someone_elses_booking(self, service, make_user, stay, as_principal):
        with pytest.raises(BookingNotFoundError):
            service.create_review(as_principal(make_user()), review_for(stay))

    def test_booking_must_match_hostel(self, service, make_hostel, host, guest, stay, as_principal):
        other = make_hostel(host)
        data = ReviewCreate(hostel_id=other.id, booking_id=stay.id, rating=3)
        with pytest.raises(ValidationError):
            service.create_review(as_principal(guest), data)

    def test_rating_bounds(self, stay):
        with pytest.raises(ValueError):
            review_for(stay, rating=6)


class TestReviewListing:

    @pytest.fixture
    def reviews(self, service, make_booking, make_user, room, as_principal):
        created = []
        for rating in (2, 5, 4):
            author = make_user()
            booking = make_booking(author, room, STAY, status=BookingStatus.CHECKED_OUT)
            created.append(service.create_review(as_principal(author), review_for(booking, rating=rating)))
        return created

    def test_sort_by_rating(self, service, hostel, reviews):
        result = service.list_hostel_reviews(hostel.id, PaginationParams(), sort="rating_high")
        assert [r.rating for r in result.items] == [5, 4, 2]

    def test_min_rating_filter(self, service, hostel, reviews):
        result = service.list_hostel_reviews(hostel.id, PaginationParams(), min_rating=4)
        assert result.total_items == 2

    def test_unknown_sort(self, service, hostel):
        with pytest.raises(ValidationError):
            service.list_hostel_reviews(hostel.id, PaginationParams(), sort="random")


class TestReviewActions:

    @pytest.fixture
    def review(self, service, guest, stay, as_principal):
        return service.create_review(as_principal(guest), review_for(stay, rating=4))

    def test_author_edits_and_rating_follows(self, service, guest, hostel, review, as_principal):
        service.update_review(as_principal(guest), review.id, ReviewUpdate(rating=2, comment="Noisy at night"))

        assert review.rating == 2
        assert review.comment == "Noisy at night"
        assert hostel.average_rating == 2.0

    def test_only_author_edits(self, service, make_user, review, as_principal):
        with pytest.raises(AuthorizationError):
            service.update_review(as_principal(make_user()), review.id, ReviewUpdate(rating=1))

    def test_owner_replies(self, service, host, review, as_principal):
        service.reply_to_review(as_principal(host), review.id, "Thanks for staying with us")

        assert review.owner_response == "Thanks for staying with us"
        assert review.responded_at == NOW

    def test_other_host_cannot_reply(self, service, make_user, review, as_principal):
        with pytest.raises(AuthorizationError):
            service.reply_to_review(as_principal(make_user(UserRole.HOST)), review.id, "Hello")

    def test_helpful_votes(self, service, make_user, guest, review, as_principal):
        voter = as_principal(make_user())
        service.mark_helpful(voter, review.id)
        service.mark_helpful(as_principal(make_user()), review.id)
        assert review.helpful_count == 2

        with pytest.raises(ConflictError):
            service.mark_helpful(voter, review.id)
        assert review.helpful_count == 2

        with pytest.raises(ValidationError):
            service.mark_helpful(as_principal(guest), review.id)

    def test_delete_removes_votes(self, service, db, make_user, guest, review, as_principal):
        service.mark_helpful(as_principal(make_user()), review.id)
        service.delete_review(as_principal(guest), review.id)
        assert db.query(ReviewVote).count() == 0

    def test_moderator_deletes_and_rating_resets(self, service, admin, hostel, review, as_principal):
        service.delete_review(as_principal(admin), review.id)

        assert hostel.average_rating == 0.0
        assert hostel.total_reviews == 0

    def test_stranger_cannot_delete(self, service, make_user, review, as_principal):
        with pytest.raises(AuthorizationError):
            service.delete_review(as_principal(make_user()), review.id)
