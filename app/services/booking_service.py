from datetime import datetime
from typing import Any, Callable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from urllib.parse import urlparse
import logging
import uuid

from app.core.database import unit_of_work
from app.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingConflictError,
    ValidationError,
)
from app.core.types import as_utc, utcnow
from app.models.booking import (
    Booking,
    BookingStatus,
    MeetingPreference,
    SessionType,
    compute_end_time,
    compute_total_amount,
)
from app.models.user import UserRole
from app.services.availability_service import AvailabilityService
from app.services.notification_service import NotificationService
from app.services.pagination import Page, normalize_paging
from app.services.policies import (
    Actor,
    BookingAction,
    BookingPolicy,
    action_for_status,
    authorize,
    check_transition,
)

logger = logging.getLogger(__name__)


class BookingService:
    """Booking lifecycle: creation, status transitions, rescheduling and cancellation"""

    def __init__(
        self,
        db: AsyncSession,
        policy: BookingPolicy = None,
        notification_service: NotificationService = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.policy = policy or BookingPolicy.from_settings()
        self.availability = AvailabilityService(db)
        self.notification_service = notification_service or NotificationService(db)
        self.clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        actor: Actor,
        tutor_id: uuid.UUID,
        subject: str,
        scheduled_date: datetime,
        duration: float,
        notes: Optional[str] = None,
        meeting_preference: Optional[MeetingPreference] = None,
        session_type: Optional[SessionType] = None
    ) -> Booking:
        """Request a lesson; the booking starts out pending tutor confirmation"""
        if actor.role != UserRole.STUDENT:
            raise ForbiddenError("Only students can book lessons")
        if not subject or not subject.strip():
            raise ValidationError("Subject is required")
        self._validate_duration(duration)
        start_time = self._validate_future(scheduled_date)
        end_time = compute_end_time(start_time, duration)

        async with unit_of_work(self.db):
            tutor = await self.availability.lock_tutor(tutor_id)
            if not tutor or not tutor.is_active:
                raise NotFoundError("Tutor not found or not available", details={"tutor_id": str(tutor_id)})

            if not tutor.teaches(subject):
                raise ValidationError(
                    "Tutor does not teach this subject",
                    details={"subject": subject, "subjects": list(tutor.subjects or [])},
                )

            if await self.availability.has_conflict(tutor_id, start_time, end_time):
                raise SchedulingConflictError(
                    "Tutor is not available at the requested time",
                    details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
                )

            booking = Booking(
                student_id=actor.id,
                tutor_id=tutor_id,
                subject=subject.strip(),
                scheduled_date=start_time,
                start_time=start_time,
                end_time=end_time,
                duration=duration,
                hourly_rate=tutor.hourly_rate,
                total_amount=compute_total_amount(duration, tutor.hourly_rate),
                status=BookingStatus.PENDING,
                notes=notes,
                meeting_preference=meeting_preference or MeetingPreference.ZOOM,
                session_type=session_type or SessionType.ONLINE,
            )
            self.db.add(booking)
            await self.db.flush()

        logger.info(f"Booking {booking.id} created by student {actor.id} with tutor {tutor_id}")
        await self.notification_service.send_booking_created_notification(booking)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, actor: Actor, booking_id: uuid.UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        authorize(BookingAction.VIEW, actor, booking)
        return booking

    async def list_student_bookings(
        self,
        student_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = None
    ) -> Page[Booking]:
        return await self._list_bookings(Booking.student_id == student_id, status, start_date, end_date, page, limit)

    async def list_tutor_bookings(
        self,
        tutor_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = None
    ) -> Page[Booking]:
        return await self._list_bookings(Booking.tutor_id == tutor_id, status, start_date, end_date, page, limit)

    async def get_booking_analytics(
        self,
        actor: Actor,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Counts per status and money moved through completed lessons"""
        if actor.role == UserRole.TUTOR:
            owner = Booking.tutor_id == actor.id
        elif actor.role == UserRole.STUDENT:
            owner = Booking.student_id == actor.id
        else:
            raise ForbiddenError("Analytics are only available to students and tutors")

        conditions = [owner] + self._date_range(start_date, end_date)
        result = await self.db.execute(
            select(Booking.status, func.count(Booking.id), func.coalesce(func.sum(Booking.total_amount), 0.0))
            .where(and_(*conditions))
            .group_by(Booking.status)
        )

        counts = {status: 0 for status in BookingStatus}
        completed_amount = 0.0
        for status, count, amount in result.all():
            counts[status] = count
            if status == BookingStatus.COMPLETED:
                completed_amount = float(amount)

        total = sum(counts.values())
        amount_key = "total_earnings" if actor.role == UserRole.TUTOR else "total_spent"
        return {
            "total_bookings": total,
            "pending_bookings": counts[BookingStatus.PENDING],
            "confirmed_bookings": counts[BookingStatus.CONFIRMED],
            "completed_bookings": counts[BookingStatus.COMPLETED],
            "cancelled_bookings": counts[BookingStatus.CANCELLED],
            "rescheduled_bookings": counts[BookingStatus.RESCHEDULED],
            amount_key: round(completed_amount, 2),
            "completion_rate": round(counts[BookingStatus.COMPLETED] / total * 100, 1) if total else 0.0,
            "cancellation_rate": round(counts[BookingStatus.CANCELLED] / total * 100, 1) if total else 0.0,
        }

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        target_status: BookingStatus,
        reason: Optional[str] = None
    ) -> Booking:
        """Generic status change used by the shared booking endpoint"""
        action = action_for_status(target_status)
        if action == BookingAction.CONFIRM:
            return await self.confirm_booking(actor, booking_id)
        if action == BookingAction.CANCEL:
            return await self.cancel_booking(actor, booking_id, reason)
        return await self.complete_booking(actor, booking_id)

    async def confirm_booking(self, actor: Actor, booking_id: uuid.UUID) -> Booking:
        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.CONFIRM, actor, booking)
            transition = check_transition(BookingAction.CONFIRM, booking)
            if booking.status == BookingStatus.RESCHEDULED:
                # A rescheduled window is not held until confirmed, so it may have been taken since
                await self.availability.lock_tutor(booking.tutor_id)
                if await self.availability.has_conflict(
                    booking.tutor_id, booking.start_time, booking.end_time, exclude_booking_id=booking.id
                ):
                    raise SchedulingConflictError(
                        "Tutor already has a booking at the rescheduled time",
                        details={"start_time": booking.start_time.isoformat(), "end_time": booking.end_time.isoformat()},
                    )
            await self._apply_transition(booking, {"status": transition.target})

        logger.info(f"Booking {booking.id} confirmed by tutor {actor.id}")
        await self.notification_service.send_booking_confirmation_notification(booking)
        return booking

    async def cancel_booking(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        reason: Optional[str] = None
    ) -> Booking:
        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.CANCEL, actor, booking)
            transition = check_transition(BookingAction.CANCEL, booking)
            now = self.clock()
            self._check_notice(BookingAction.CANCEL, actor, booking, now)
            await self._apply_transition(booking, {
                "status": transition.target,
                "cancellation_reason": reason,
                "cancelled_by": actor.role,
                "cancelled_at": now,
            })

        logger.info(f"Booking {booking.id} cancelled by {actor.role.value} {actor.id}")
        await self.notification_service.send_booking_cancellation_notification(booking)
        return booking

    async def complete_booking(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        lesson_notes: Optional[str] = None,
        next_steps: Optional[str] = None,
        student_progress: Optional[str] = None
    ) -> Booking:
        """Mark a lesson as taught; this is what makes it eligible for rating"""
        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.COMPLETE, actor, booking)
            transition = check_transition(BookingAction.COMPLETE, booking)
            now = self.clock()
            if not self.policy.allow_early_completion and now < booking.end_time:
                raise InvalidTransitionError(
                    "Lesson cannot be completed before its scheduled end time",
                    details={"booking_id": str(booking.id), "end_time": booking.end_time.isoformat()},
                )

            values = {"status": transition.target, "completed_at": now}
            if lesson_notes is not None:
                values["lesson_notes"] = lesson_notes
            if next_steps is not None:
                values["next_steps"] = next_steps
            if student_progress is not None:
                values["student_progress"] = student_progress
            await self._apply_transition(booking, values)

        logger.info(f"Booking {booking.id} marked completed by tutor {actor.id}")
        await self.notification_service.send_lesson_completed_notification(booking)
        return booking

    async def reschedule_booking(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        new_scheduled_date: datetime,
        reason: Optional[str] = None
    ) -> Booking:
        new_start = self._validate_future(new_scheduled_date)

        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.RESCHEDULE, actor, booking)
            transition = check_transition(BookingAction.RESCHEDULE, booking)
            self._check_notice(BookingAction.RESCHEDULE, actor, booking, self.clock())

            new_end = compute_end_time(new_start, booking.duration)
            await self.availability.lock_tutor(booking.tutor_id)
            if await self.availability.has_conflict(booking.tutor_id, new_start, new_end, exclude_booking_id=booking.id):
                raise SchedulingConflictError(
                    "Tutor is not available at the requested new time",
                    details={"start_time": new_start.isoformat(), "end_time": new_end.isoformat()},
                )

            previous = booking.scheduled_date
            await self._apply_transition(booking, {
                "status": transition.target,
                "original_scheduled_date": previous,
                "scheduled_date": new_start,
                "start_time": new_start,
                "end_time": new_end,
                "total_amount": compute_total_amount(booking.duration, booking.hourly_rate),
                "reschedule_reason": reason,
                "rescheduled_by": actor.role,
            })

        logger.info(
            f"Booking {booking.id} rescheduled by {actor.role.value} {actor.id} "
            f"from {previous.isoformat()} to {new_start.isoformat()}"
        )
        await self.notification_service.send_booking_reschedule_notification(booking, previous)
        return booking

    # ------------------------------------------------------------------
    # Auxiliary updates
    # ------------------------------------------------------------------

    async def update_meeting_details(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        meeting_link: Optional[str] = None,
        location: Optional[str] = None
    ) -> Booking:
        if not meeting_link and not location:
            raise ValidationError("Meeting link or location is required")
        if meeting_link:
            parsed = urlparse(meeting_link)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValidationError("Invalid meeting link URL")

        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.UPDATE_MEETING, actor, booking)
            if booking.is_terminal:
                raise InvalidTransitionError(f"Cannot change meeting details of a {booking.status.value} booking")

            values = {}
            if meeting_link:
                values["meeting_link"] = meeting_link
            if location:
                values["location"] = location
            await self._apply_transition(booking, values)

        return booking

    async def add_tutor_feedback(self, actor: Actor, booking_id: uuid.UUID, feedback: str) -> Booking:
        if not feedback or not feedback.strip():
            raise ValidationError("Feedback is required")

        async with unit_of_work(self.db):
            booking = await self._get_booking(booking_id)
            authorize(BookingAction.ADD_FEEDBACK, actor, booking)
            if booking.status != BookingStatus.COMPLETED:
                raise InvalidTransitionError("Feedback can only be added to completed bookings")
            await self._apply_transition(booking, {"tutor_feedback": feedback})

        return booking

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_booking(self, booking_id: uuid.UUID) -> Booking:
        result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
        return booking

    async def _apply_transition(self, booking: Booking, values: Dict[str, Any]) -> Booking:
        """
        Write ``values`` only if the booking still has the status we validated against.

        A concurrent request that changed the status first makes the UPDATE match
        no rows, which is reported as an invalid transition instead of silently
        overwriting the other request's result.
        """
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == booking.status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Booking {booking.id} changed concurrently, update rejected")
            raise InvalidTransitionError(
                "Booking was modified by another request, please reload and retry",
                details={"booking_id": str(booking.id)},
            )
        await self.db.refresh(booking)
        return booking

    def _check_notice(self, action: BookingAction, actor: Actor, booking: Booking, now: datetime) -> None:
        try:
            self.policy.check_notice(action, actor, booking, now)
        except InvalidTransitionError:
            logger.warning(f"{action.value} of booking {booking.id} by {actor.role.value} {actor.id} rejected, notice period passed")
            raise

    def _validate_duration(self, duration: float) -> None:
        if duration is None or duration < self.policy.min_duration_hours:
            raise ValidationError(
                f"Duration must be at least {self.policy.min_duration_hours:g} hours",
                details={"duration": duration},
            )
        if duration > self.policy.max_duration_hours:
            raise ValidationError(
                f"Duration cannot exceed {self.policy.max_duration_hours:g} hours",
                details={"duration": duration},
            )

    def _validate_future(self, scheduled_date: datetime) -> datetime:
        if scheduled_date is None:
            raise ValidationError("Scheduled date is required")
        start_time = as_utc(scheduled_date)
        if start_time <= self.clock():
            raise ValidationError("Scheduled date must be in the future")
        return start_time

    def _date_range(self, start_date: Optional[datetime], end_date: Optional[datetime]):
        conditions = []
        if start_date:
            conditions.append(Booking.scheduled_date >= as_utc(start_date))
        if end_date:
            conditions.append(Booking.scheduled_date <= as_utc(end_date))
        return conditions

    async def _list_bookings(self, owner, status, start_date, end_date, page, limit) -> Page[Booking]:
        page, limit, offset = normalize_paging(page, limit)
        conditions = [owner] + self._date_range(start_date, end_date)
        if status:
            conditions.append(Booking.status == status)

        total = await self.db.scalar(select(func.count(Booking.id)).where(and_(*conditions)))
        result = await self.db.execute(
            select(Booking)
            .where(and_(*conditions))
            .order_by(Booking.scheduled_date.desc())
            .offset(offset)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
