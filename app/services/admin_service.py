from datetime import datetime
from typing import Callable, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.orm import aliased
import logging
import uuid

from app.core.database import unit_of_work
from app.core.exceptions import ForbiddenError, InvalidPreconditionError, NotFoundError, ValidationError
from app.core.types import as_utc, utcnow
from app.models.booking import Booking, BookingStatus, DisputeStatus, PaymentStatus
from app.models.tutor_profile import TutorProfile
from app.models.user import User, UserRole
from app.services.availability_service import AvailabilityService
from app.services.pagination import Page, normalize_paging
from app.services.policies import TRANSITIONS, Actor, BookingAction, authorize

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "scheduled_date": Booking.scheduled_date,
    "created_at": Booking.created_at,
    "total_amount": Booking.total_amount,
}


class AdminService:
    """Admin oversight of bookings and accounts"""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def list_all_bookings(
        self,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        sort_by: str = "scheduled_date",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20
    ) -> Page[Booking]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort_by}'", details={"allowed": sorted(SORTABLE_FIELDS)})
        page, limit, offset = normalize_paging(page, limit)

        student = aliased(User)
        tutor = aliased(User)
        conditions = []
        if status:
            conditions.append(Booking.status == status)
        if start_date:
            conditions.append(Booking.scheduled_date >= as_utc(start_date))
        if end_date:
            conditions.append(Booking.scheduled_date <= as_utc(end_date))
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                student.full_name.ilike(pattern),
                student.email.ilike(pattern),
                tutor.full_name.ilike(pattern),
                tutor.email.ilike(pattern),
                Booking.subject.ilike(pattern),
            ))

        base = (
            select(Booking)
            .join(student, Booking.student_id == student.id)
            .join(tutor, Booking.tutor_id == tutor.id)
            .where(and_(*conditions))
        )
        total = await self.db.scalar(select(func.count()).select_from(base.subquery()))

        column = SORTABLE_FIELDS[sort_by]
        ordering = column.asc() if sort_order == "asc" else column.desc()
        result = await self.db.execute(base.order_by(ordering).offset(offset).limit(limit))
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)

    async def resolve_dispute(
        self,
        actor: Actor,
        booking_id: uuid.UUID,
        dispute_status: DisputeStatus,
        admin_notes: Optional[str] = None,
        resolution: Optional[str] = None,
        refund_amount: Optional[float] = None
    ) -> Booking:
        """Record an admin decision on a disputed booking; a refund only relabels payment status"""
        if refund_amount is not None and refund_amount < 0:
            raise ValidationError("Refund amount cannot be negative")

        async with unit_of_work(self.db):
            result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
            authorize(BookingAction.RESOLVE_DISPUTE, actor, booking)

            if refund_amount is not None and refund_amount > booking.total_amount:
                raise ValidationError(
                    "Refund amount cannot exceed the booking total",
                    details={"total_amount": booking.total_amount},
                )

            values = {
                "dispute_status": dispute_status,
                "admin_notes": admin_notes,
                "dispute_resolution": resolution,
                "dispute_resolved_at": self.clock(),
            }
            if refund_amount:
                values["refund_amount"] = refund_amount
                values["payment_status"] = PaymentStatus.REFUNDED

            await self.db.execute(
                update(Booking)
                .where(Booking.id == booking.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.refresh(booking)

        logger.info(f"Dispute on booking {booking.id} set to {dispute_status.value} by admin {actor.id}")
        return booking

    # ------------------------------------------------------------------
    # Account oversight
    # ------------------------------------------------------------------

    async def deactivate_user(
        self,
        actor: Actor,
        user_id: uuid.UUID,
        reason: Optional[str] = None
    ) -> Tuple[User, int]:
        """Block a user account and cancel their upcoming lessons; returns the user and the cancelled count"""
        self._require_admin(actor)
        if user_id == actor.id:
            raise ValidationError("Admins cannot deactivate their own account")

        async with unit_of_work(self.db):
            user = await self._get_user(user_id)
            if not user.is_active:
                raise InvalidPreconditionError("User is already deactivated", details={"user_id": str(user_id)})

            now = self.clock()
            user.is_active = False
            user.deactivation_reason = reason
            user.deactivated_at = now
            cancelled = await self._cancel_upcoming(
                or_(Booking.student_id == user_id, Booking.tutor_id == user_id),
                "User account deactivated by admin",
                now,
            )

        logger.info(f"User {user_id} deactivated by admin {actor.id}, {cancelled} upcoming bookings cancelled")
        return user, cancelled

    async def activate_user(self, actor: Actor, user_id: uuid.UUID) -> User:
        self._require_admin(actor)
        async with unit_of_work(self.db):
            user = await self._get_user(user_id)
            if user.is_active:
                raise InvalidPreconditionError("User is already active", details={"user_id": str(user_id)})
            user.is_active = True
            user.reactivated_at = self.clock()
            user.deactivation_reason = None
            user.deactivated_at = None

        logger.info(f"User {user_id} activated by admin {actor.id}")
        return user

    async def deactivate_tutor(
        self,
        actor: Actor,
        tutor_id: uuid.UUID,
        reason: Optional[str] = None
    ) -> Tuple[TutorProfile, int]:
        """Hide a tutor from booking and search and cancel the tutor's upcoming lessons"""
        self._require_admin(actor)

        async with unit_of_work(self.db):
            # Same row lock as booking creation, so no new booking slips in during the cascade
            tutor = await AvailabilityService(self.db).lock_tutor(tutor_id)
            if not tutor:
                raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})
            if not tutor.is_active:
                raise InvalidPreconditionError("Tutor is already deactivated", details={"tutor_id": str(tutor_id)})

            now = self.clock()
            tutor.is_active = False
            tutor.deactivation_reason = reason
            tutor.deactivated_at = now
            cancelled = await self._cancel_upcoming(
                Booking.tutor_id == tutor_id,
                "Tutor account deactivated by admin",
                now,
            )

        logger.info(f"Tutor {tutor_id} deactivated by admin {actor.id}, {cancelled} upcoming bookings cancelled")
        return tutor, cancelled

    async def activate_tutor(self, actor: Actor, tutor_id: uuid.UUID) -> TutorProfile:
        self._require_admin(actor)
        async with unit_of_work(self.db):
            tutor = await AvailabilityService(self.db).lock_tutor(tutor_id)
            if not tutor:
                raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})
            if tutor.is_active:
                raise InvalidPreconditionError("Tutor is already active", details={"tutor_id": str(tutor_id)})
            tutor.is_active = True
            tutor.reactivated_at = self.clock()
            tutor.deactivation_reason = None
            tutor.deactivated_at = None

        logger.info(f"Tutor {tutor_id} activated by admin {actor.id}")
        return tutor

    def _require_admin(self, actor: Actor) -> None:
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Access denied. Insufficient permissions.")

    async def _get_user(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return user

    async def _cancel_upcoming(self, owner, reason: str, now: datetime) -> int:
        result = await self.db.execute(
            update(Booking)
            .where(
                owner,
                Booking.status.in_(TRANSITIONS[BookingAction.CANCEL].sources),
                Booking.scheduled_date >= now,
            )
            .values(
                status=BookingStatus.CANCELLED,
                cancellation_reason=reason,
                cancelled_by=UserRole.ADMIN,
                cancelled_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
