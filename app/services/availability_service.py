from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
from datetime import datetime
import logging
import uuid

from app.core.exceptions import TransientStoreError
from app.core.types import as_utc
from app.models.booking import Booking, ACTIVE_STATUSES
from app.models.tutor_profile import TutorProfile

logger = logging.getLogger(__name__)


def windows_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime
) -> bool:
    """Half-open overlap test: a window ending exactly when another starts is free"""
    return start_a < end_b and end_a > start_b


class AvailabilityService:
    """Service for detecting conflicts between a candidate window and a tutor's bookings"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_conflicts(
        self,
        tutor_id: uuid.UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[uuid.UUID] = None
    ) -> List[Booking]:
        """Active bookings of the tutor whose window overlaps [start_time, end_time)"""
        start_time = as_utc(start_time)
        end_time = as_utc(end_time)

        conditions = [
            Booking.tutor_id == tutor_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.start_time < end_time,
            Booking.end_time > start_time,
        ]
        if exclude_booking_id is not None:
            conditions.append(Booking.id != exclude_booking_id)

        try:
            result = await self.db.execute(
                select(Booking).where(and_(*conditions)).order_by(Booking.start_time)
            )
        except SQLAlchemyError as e:
            logger.error(f"Conflict lookup failed for tutor {tutor_id}: {e}")
            raise TransientStoreError("Failed to check tutor availability") from e

        conflicts = list(result.scalars().all())
        if conflicts:
            logger.info(
                f"Found {len(conflicts)} conflicting bookings for tutor {tutor_id} "
                f"between {start_time.isoformat()} and {end_time.isoformat()}"
            )
        return conflicts

    async def has_conflict(
        self,
        tutor_id: uuid.UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_booking_id: Optional[uuid.UUID] = None
    ) -> bool:
        """Check if a specific time window is already taken"""
        conflicts = await self.find_conflicts(tutor_id, start_time, end_time, exclude_booking_id)
        return len(conflicts) > 0

    async def lock_tutor(self, tutor_id: uuid.UUID) -> Optional[TutorProfile]:
        """
        Load the tutor profile with a row lock.

        Holding this lock until commit serializes every check-then-write on the
        tutor's calendar, so two overlapping requests cannot both pass the
        conflict check.
        """
        try:
            result = await self.db.execute(
                select(TutorProfile)
                .where(TutorProfile.user_id == tutor_id)
                .with_for_update()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to lock tutor {tutor_id}: {e}")
            raise TransientStoreError("Failed to load tutor profile") from e
        return result.scalar_one_or_none()
