from roomlink.models.booking import Booking
from roomlink.models.complaint import Complaint, ComplaintNote
from roomlink.models.hostel import Hostel, Room
from roomlink.models.payment import Payment
from roomlink.models.review import Review, ReviewVote
from roomlink.models.user import User

__all__ = [
    "Booking",
    "Complaint",
    "ComplaintNote",
    "Hostel",
    "Payment",
    "Review",
    "ReviewVote",
    "Room",
    "User",
]
