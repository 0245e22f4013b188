from datetime import datetime, timedelta
from sqlalchemy import Column, String, Float, ForeignKey, Text, Enum, Index, Uuid
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import UTCDateTime
from app.models.user import UserRole


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Statuses that hold a tutor's time and take part in conflict checks
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class SessionType(str, enum.Enum):
    ONLINE = "online"
    IN_PERSON = "in-person"


class MeetingPreference(str, enum.Enum):
    ZOOM = "zoom"
    GOOGLE_MEET = "google-meet"
    SKYPE = "skype"
    IN_PERSON = "in-person"
    OTHER = "other"


class DisputeStatus(str, enum.Enum):
    UNDER_REVIEW = "under_review"
    RESOLVED_STUDENT = "resolved_student"
    RESOLVED_TUTOR = "resolved_tutor"
    RESOLVED_PARTIAL = "resolved_partial"
    DISMISSED = "dismissed"


def compute_end_time(scheduled_date: datetime, duration: float) -> datetime:
    return scheduled_date + timedelta(hours=duration)


def compute_total_amount(duration: float, hourly_rate: float) -> float:
    return duration * hourly_rate


class Booking(Base):
    __tablename__ = "bookings"

    # User relationships
    student_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    tutor_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    subject = Column(String, nullable=False)

    # Time information (UTC); start/end are derived from scheduled_date and duration
    scheduled_date = Column(UTCDateTime, nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    duration = Column(Float, nullable=False)  # Hours

    # Commercial snapshot
    hourly_rate = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    # Lifecycle
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)

    # Meeting details
    session_type = Column(Enum(SessionType), default=SessionType.ONLINE, nullable=False)
    meeting_preference = Column(Enum(MeetingPreference), default=MeetingPreference.ZOOM, nullable=False)
    meeting_link = Column(String, nullable=True)
    location = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    tutor_feedback = Column(Text, nullable=True)

    # Cancellation
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(Enum(UserRole), nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    # Reschedule
    original_scheduled_date = Column(UTCDateTime, nullable=True)
    reschedule_reason = Column(Text, nullable=True)
    rescheduled_by = Column(Enum(UserRole), nullable=True)

    # Completion
    completed_at = Column(UTCDateTime, nullable=True)
    lesson_notes = Column(Text, default="", nullable=False)
    next_steps = Column(Text, default="", nullable=False)
    student_progress = Column(Text, default="", nullable=False)
    notes_updated_at = Column(UTCDateTime, nullable=True)

    # Admin dispute handling
    dispute_status = Column(Enum(DisputeStatus), nullable=True)
    admin_notes = Column(Text, nullable=True)
    dispute_resolution = Column(Text, nullable=True)
    dispute_resolved_at = Column(UTCDateTime, nullable=True)
    refund_amount = Column(Float, nullable=True)

    # Relationships
    student = relationship("User", foreign_keys=[student_id], back_populates="bookings_as_student")
    tutor = relationship("User", foreign_keys=[tutor_id], back_populates="bookings_as_tutor")
    rating = relationship("Rating", back_populates="booking", uselist=False)

    __table_args__ = (
        Index("idx_bookings_tutor_window", "tutor_id", "status", "start_time", "end_time"),
        Index("idx_bookings_student_scheduled", "student_id", "scheduled_date"),
        Index("idx_bookings_status_end", "status", "end_time"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_be_rated(self) -> bool:
        return self.status == BookingStatus.COMPLETED

    def can_be_completed(self, now: datetime) -> bool:
        return self.status == BookingStatus.CONFIRMED and now >= self.end_time

    def __repr__(self):
        return f"<Booking(student_id={self.student_id}, tutor_id={self.tutor_id}, scheduled_date={self.scheduled_date}, status={self.status})>"
