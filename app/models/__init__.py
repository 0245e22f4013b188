from app.core.database import Base
from .user import User, UserRole
from .tutor_profile import TutorProfile
from .booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    SessionType,
    MeetingPreference,
    DisputeStatus,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
)
from .rating import Rating

__all__ = [
    "Base",

    # Accounts
    "User",
    "UserRole",
    "TutorProfile",

    # Booking lifecycle
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "SessionType",
    "MeetingPreference",
    "DisputeStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",

    # Ratings
    "Rating",
]
