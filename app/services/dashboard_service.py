from datetime import datetime
from typing import Any, Callable, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import logging
import uuid

from app.core.types import utcnow
from app.models.booking import Booking, BookingStatus
from app.models.rating import Rating
from app.models.tutor_profile import TutorProfile
from app.models.user import User

logger = logging.getLogger(__name__)

DASHBOARD_ITEMS = 5
RECENT_ACTIVITY_ITEMS = 10


class DashboardService:
    """Student landing page: headline numbers, next lessons and most booked tutors"""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def get_student_dashboard(self, student_id: uuid.UUID) -> Dict[str, Any]:
        total_bookings = await self.db.scalar(
            select(func.count(Booking.id)).where(Booking.student_id == student_id)
        )
        completed = await self.db.execute(
            select(func.count(Booking.id), func.coalesce(func.sum(Booking.total_amount), 0.0))
            .where(Booking.student_id == student_id, Booking.status == BookingStatus.COMPLETED)
        )
        completed_lessons, total_spent = completed.one()

        favorite_tutors = await self._favorite_tutors(student_id)
        return {
            "stats": {
                "total_bookings": total_bookings or 0,
                "completed_lessons": completed_lessons,
                "total_spent": round(float(total_spent), 2),
                "favorite_tutors_count": len(favorite_tutors),
            },
            "upcoming_lessons": await self._upcoming_lessons(student_id),
            "favorite_tutors": favorite_tutors,
            "recent_activity": await self._recent_activity(student_id),
        }

    async def _upcoming_lessons(self, student_id: uuid.UUID) -> List[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.student_id == student_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.scheduled_date >= self.clock(),
            )
            .order_by(Booking.scheduled_date.asc())
            .limit(DASHBOARD_ITEMS)
        )
        return list(result.scalars().all())

    async def _favorite_tutors(self, student_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Tutors with the most confirmed or completed lessons for this student"""
        lessons = func.count(Booking.id).label("lessons")
        result = await self.db.execute(
            select(Booking.tutor_id, User.full_name, TutorProfile.subjects, TutorProfile.average_rating, lessons)
            .join(User, User.id == Booking.tutor_id)
            .join(TutorProfile, TutorProfile.user_id == Booking.tutor_id)
            .where(
                Booking.student_id == student_id,
                Booking.status.in_([BookingStatus.COMPLETED, BookingStatus.CONFIRMED]),
            )
            .group_by(Booking.tutor_id, User.full_name, TutorProfile.subjects, TutorProfile.average_rating)
            .order_by(lessons.desc(), User.full_name.asc())
            .limit(DASHBOARD_ITEMS)
        )
        return [
            {
                "tutor_id": str(tutor_id),
                "name": name,
                "subjects": list(subjects or []),
                "average_rating": average_rating,
                "lessons": count,
            }
            for tutor_id, name, subjects, average_rating, count in result.all()
        ]

    async def _recent_activity(self, student_id: uuid.UUID) -> List[Dict[str, Any]]:
        bookings = await self.db.execute(
            select(Booking.created_at, Booking.status, User.full_name)
            .join(User, User.id == Booking.tutor_id)
            .where(Booking.student_id == student_id)
            .order_by(Booking.created_at.desc())
            .limit(DASHBOARD_ITEMS)
        )
        ratings = await self.db.execute(
            select(Rating.created_at, Rating.rating, User.full_name)
            .join(User, User.id == Rating.tutor_id)
            .where(Rating.student_id == student_id)
            .order_by(Rating.created_at.desc())
            .limit(DASHBOARD_ITEMS)
        )

        activity = [
            {
                "type": "booking",
                "action": f"Booked lesson with {name}",
                "date": created_at,
                "status": status.value,
            }
            for created_at, status, name in bookings.all()
        ]
        activity.extend(
            {
                "type": "rating",
                "action": f"Rated {name} {value} stars",
                "date": created_at,
                "status": None,
            }
            for created_at, value, name in ratings.all()
        )
        activity.sort(key=lambda item: item["date"], reverse=True)
        return activity[:RECENT_ACTIVITY_ITEMS]
