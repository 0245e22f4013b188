from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from app.core.database import unit_of_work
from app.core.exceptions import (
    DuplicateRatingError,
    ForbiddenError,
    InvalidPreconditionError,
    NotFoundError,
    ValidationError,
)
from app.models.booking import Booking, BookingStatus
from app.models.rating import Rating
from app.models.tutor_profile import TutorProfile
from app.models.user import UserRole
from app.services.availability_service import AvailabilityService
from app.services.pagination import Page, normalize_paging
from app.services.policies import Actor

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 500


@dataclass(frozen=True)
class RatingAggregate:
    average_rating: float
    total_ratings: int


def average_of(rating_sum: int, count: int) -> float:
    """Mean rounded half-up to one decimal; 0.0 when there are no ratings"""
    if count <= 0:
        return 0.0
    mean = Decimal(rating_sum) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class RatingService:
    """Rating submission and the tutor aggregate derived from it"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.availability = AvailabilityService(db)

    async def submit_rating(
        self,
        actor: Actor,
        tutor_id: uuid.UUID,
        booking_id: uuid.UUID,
        rating: int,
        comment: Optional[str] = None
    ) -> Tuple[Rating, RatingAggregate]:
        """
        Rate a completed lesson and refresh the tutor's aggregate.

        The tutor row is locked before the insert, so concurrent ratings for the
        same tutor recompute one after another and each sees every committed
        rating. The (student, tutor, booking) unique constraint decides which of
        two simultaneous ratings for one booking wins.
        """
        if actor.role != UserRole.STUDENT:
            raise ForbiddenError("Only students can rate tutors")
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}", details={"rating": rating})
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")

        async with unit_of_work(self.db):
            result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
            if booking.student_id != actor.id or booking.tutor_id != tutor_id:
                raise InvalidPreconditionError("You can only rate tutors for your own lessons")
            if booking.status != BookingStatus.COMPLETED:
                raise InvalidPreconditionError(
                    "You can only rate tutors after completing a lesson",
                    details={"booking_id": str(booking.id), "status": booking.status.value},
                )

            tutor = await self.availability.lock_tutor(tutor_id)
            if not tutor:
                raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})

            new_rating = Rating(
                student_id=actor.id,
                tutor_id=tutor_id,
                booking_id=booking_id,
                rating=rating,
                comment=comment,
            )
            self.db.add(new_rating)
            try:
                await self.db.flush()
            except IntegrityError as e:
                logger.warning(f"Duplicate rating for booking {booking_id} by student {actor.id}")
                raise DuplicateRatingError(
                    "You have already rated this tutor for this lesson",
                    details={"booking_id": str(booking_id)},
                ) from e

            aggregate = await self._recalculate(tutor)

        logger.info(
            f"Rating {new_rating.id} ({rating}) stored for tutor {tutor_id}, "
            f"average now {aggregate.average_rating} over {aggregate.total_ratings}"
        )
        return new_rating, aggregate

    async def recalculate_tutor_rating(self, tutor_id: uuid.UUID) -> RatingAggregate:
        """Rebuild a tutor's aggregate from the stored ratings"""
        async with unit_of_work(self.db):
            tutor = await self.availability.lock_tutor(tutor_id)
            if not tutor:
                raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})
            aggregate = await self._recalculate(tutor)
        return aggregate

    async def list_student_ratings(self, student_id: uuid.UUID, page: int = 1, limit: int = None) -> Page[Rating]:
        return await self._list(Rating.student_id == student_id, page, limit)

    async def list_tutor_ratings(self, tutor_id: uuid.UUID, page: int = 1, limit: int = None) -> Page[Rating]:
        return await self._list(Rating.tutor_id == tutor_id, page, limit)

    async def _recalculate(self, tutor: TutorProfile) -> RatingAggregate:
        # Reads inside the caller's transaction, so the rating just flushed is counted
        result = await self.db.execute(
            select(func.coalesce(func.sum(Rating.rating), 0), func.count(Rating.id))
            .where(Rating.tutor_id == tutor.user_id)
        )
        rating_sum, count = result.one()
        aggregate = RatingAggregate(average_rating=average_of(int(rating_sum), count), total_ratings=count)

        tutor.average_rating = aggregate.average_rating
        tutor.total_ratings = aggregate.total_ratings
        await self.db.flush()
        return aggregate

    async def _list(self, condition, page: int, limit: int) -> Page[Rating]:
        page, limit, offset = normalize_paging(page, limit)
        total = await self.db.scalar(select(func.count(Rating.id)).where(condition))
        result = await self.db.execute(
            select(Rating).where(condition).order_by(Rating.created_at.desc()).offset(offset).limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
