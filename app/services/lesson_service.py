from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
import logging
import uuid

from app.core.database import unit_of_work
from app.core.exceptions import InvalidPreconditionError, InvalidTransitionError, NotFoundError, ValidationError
from app.core.types import utcnow
from app.models.booking import Booking, BookingStatus
from app.services.booking_service import BookingService
from app.services.pagination import Page, normalize_paging
from app.services.policies import Actor, BookingAction, authorize

logger = logging.getLogger(__name__)


class LessonService:
    """Post-lesson workflow for tutors: completion, notes and the completion queue"""

    def __init__(
        self,
        db: AsyncSession,
        booking_service: BookingService = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.clock = clock
        self.booking_service = booking_service or BookingService(db, clock=clock)

    async def mark_completed(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        lesson_notes: Optional[str] = None,
        next_steps: Optional[str] = None,
        student_progress: Optional[str] = None
    ) -> Booking:
        return await self.booking_service.complete_booking(
            actor,
            booking_id,
            lesson_notes=lesson_notes,
            next_steps=next_steps,
            student_progress=student_progress,
        )

    async def update_notes(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        lesson_notes: Optional[str] = None,
        next_steps: Optional[str] = None,
        student_progress: Optional[str] = None
    ) -> Booking:
        """Edit notes of a completed lesson without touching its status"""
        values = {
            key: value
            for key, value in (
                ("lesson_notes", lesson_notes),
                ("next_steps", next_steps),
                ("student_progress", student_progress),
            )
            if value is not None
        }
        if not values:
            raise ValidationError("At least one of lesson notes, next steps or student progress is required")

        async with unit_of_work(self.db):
            result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})

            authorize(BookingAction.UPDATE_NOTES, actor, booking)
            if booking.status != BookingStatus.COMPLETED:
                raise InvalidPreconditionError(
                    "Notes can only be updated for completed lessons",
                    details={"booking_id": str(booking.id), "status": booking.status.value},
                )

            values["notes_updated_at"] = self.clock()
            await self._write_notes(booking, values)

        logger.info(f"Lesson notes updated for booking {booking.id} by tutor {actor.id}")
        return booking

    async def _write_notes(self, booking: Booking, values) -> Booking:
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.COMPLETED)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Booking {booking.id} is no longer completed, notes update rejected")
            raise InvalidTransitionError(
                "Booking was modified by another request, please reload and retry",
                details={"booking_id": str(booking.id)},
            )
        await self.db.refresh(booking)
        return booking

    async def list_completable(self, tutor_id: uuid.UUID, page: int = 1, limit: int = None) -> Page[Booking]:
        """Confirmed lessons that have already ended and wait for the tutor to close them"""
        return await self._list(
            [
                Booking.tutor_id == tutor_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.end_time <= self.clock(),
            ],
            Booking.end_time.asc(),
            page,
            limit,
        )

    async def list_completed(self, tutor_id: uuid.UUID, page: int = 1, limit: int = None) -> Page[Booking]:
        return await self._list(
            [Booking.tutor_id == tutor_id, Booking.status == BookingStatus.COMPLETED],
            Booking.completed_at.desc(),
            page,
            limit,
        )

    async def _list(self, conditions, order_by, page: int, limit: int) -> Page[Booking]:
        page, limit, offset = normalize_paging(page, limit)
        total = await self.db.scalar(select(func.count(Booking.id)).where(and_(*conditions)))
        result = await self.db.execute(
            select(Booking).where(and_(*conditions)).order_by(order_by).offset(offset).limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
