from sqlalchemy import Column, Integer, ForeignKey, Text, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base


class Rating(Base):
    __tablename__ = "ratings"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    tutor_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False, unique=True)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    # Relationships
    student = relationship("User", foreign_keys=[student_id], back_populates="ratings_given")
    tutor = relationship("User", foreign_keys=[tutor_id])
    booking = relationship("Booking", back_populates="rating")

    __table_args__ = (
        # One rating per lesson, enforced by the database
        UniqueConstraint("student_id", "tutor_id", "booking_id", name="uq_ratings_student_tutor_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_ratings_range"),
    )

    def __repr__(self):
        return f"<Rating(booking_id={self.booking_id}, tutor_id={self.tutor_id}, rating={self.rating})>"
