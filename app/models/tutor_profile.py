from sqlalchemy import Column, String, Text, Integer, Float, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import StringList, UTCDateTime


class TutorProfile(Base):
    __tablename__ = "tutor_profiles"

    # Foreign key to user
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True)

    # Profile information
    bio = Column(Text, nullable=True)
    education = Column(String, nullable=True)
    experience_years = Column(Integer, default=0, nullable=False)
    location = Column(String, nullable=True)
    languages = Column(StringList, nullable=False, default=list)
    subjects = Column(StringList, nullable=False, default=list)
    hourly_rate = Column(Float, nullable=False)

    # Listing state
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    deactivation_reason = Column(Text, nullable=True)
    deactivated_at = Column(UTCDateTime, nullable=True)
    reactivated_at = Column(UTCDateTime, nullable=True)

    # Aggregate rating, written only by the rating service
    average_rating = Column(Float, default=0.0, nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)

    # Relationships
    user = relationship("User", back_populates="tutor_profile")

    def teaches(self, subject: str) -> bool:
        wanted = subject.strip().lower()
        return any(s.strip().lower() == wanted for s in (self.subjects or []))

    def __repr__(self):
        return f"<TutorProfile(user_id={self.user_id}, subjects={self.subjects})>"
