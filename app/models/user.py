from sqlalchemy import Column, String, Text, Enum, Boolean
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import UTCDateTime


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    # Core user fields
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    location = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Account status set by admins
    deactivation_reason = Column(Text, nullable=True)
    deactivated_at = Column(UTCDateTime, nullable=True)
    reactivated_at = Column(UTCDateTime, nullable=True)

    # Relationships
    tutor_profile = relationship("TutorProfile", back_populates="user", uselist=False)
    bookings_as_student = relationship("Booking", foreign_keys="Booking.student_id", back_populates="student")
    bookings_as_tutor = relationship("Booking", foreign_keys="Booking.tutor_id", back_populates="tutor")
    ratings_given = relationship("Rating", foreign_keys="Rating.student_id", back_populates="student")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
