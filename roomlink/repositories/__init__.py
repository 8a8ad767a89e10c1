from roomlink.repositories.booking_repository import BookingRepository
from roomlink.repositories.complaint_repository import ComplaintNoteRepository, ComplaintRepository
from roomlink.repositories.hostel_repository import HostelRepository, RoomRepository
from roomlink.repositories.payment_repository import PaymentRepository
from roomlink.repositories.review_repository import ReviewRepository
from roomlink.repositories.user_repository import UserRepository

__all__ = [
    "BookingRepository",
    "ComplaintNoteRepository",
    "ComplaintRepository",
    "HostelRepository",
    "PaymentRepository",
    "ReviewRepository",
    "RoomRepository",
    "UserRepository",
]
