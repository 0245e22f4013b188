from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from sqlalchemy.orm import selectinload
import logging
import uuid

from app.core.exceptions import NotFoundError, ValidationError
from app.models.tutor_profile import TutorProfile
from app.services.pagination import Page, normalize_paging

logger = logging.getLogger(__name__)


class TutorService:
    """Public, read-only view of tutor profiles"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tutor(self, tutor_id: uuid.UUID) -> TutorProfile:
        result = await self.db.execute(
            select(TutorProfile)
            .options(selectinload(TutorProfile.user))
            .where(TutorProfile.user_id == tutor_id)
        )
        tutor = result.scalar_one_or_none()
        if not tutor:
            raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})
        if not tutor.is_active:
            raise NotFoundError("Tutor is not available", details={"tutor_id": str(tutor_id)})
        return tutor

    async def search_tutors(
        self,
        subject: Optional[str] = None,
        location: Optional[str] = None,
        min_rate: Optional[float] = None,
        max_rate: Optional[float] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        limit: int = None
    ) -> Page[TutorProfile]:
        """Active tutors matching the filters, best rated first"""
        if min_rate is not None and max_rate is not None and min_rate > max_rate:
            raise ValidationError("min_rate cannot be greater than max_rate")
        page, limit, offset = normalize_paging(page, limit)

        conditions = [TutorProfile.is_active.is_(True)]
        if location:
            conditions.append(TutorProfile.location.ilike(f"%{location}%"))
        if min_rate is not None:
            conditions.append(TutorProfile.hourly_rate >= min_rate)
        if max_rate is not None:
            conditions.append(TutorProfile.hourly_rate <= max_rate)
        if min_rating is not None:
            conditions.append(TutorProfile.average_rating >= min_rating)

        query = (
            select(TutorProfile)
            .options(selectinload(TutorProfile.user))
            .where(and_(*conditions))
            .order_by(TutorProfile.average_rating.desc(), TutorProfile.total_ratings.desc())
        )

        if subject:
            # Subjects are stored as an array on PostgreSQL and JSON on SQLite, so
            # partial, case-insensitive matching is done after loading.
            result = await self.db.execute(query)
            wanted = subject.strip().lower()
            matches = [
                tutor for tutor in result.scalars().all()
                if any(wanted in s.lower() for s in (tutor.subjects or []))
            ]
            return Page(items=matches[offset:offset + limit], total=len(matches), page=page, limit=limit)

        total = await self.db.scalar(select(func.count(TutorProfile.id)).where(and_(*conditions)))
        result = await self.db.execute(query.offset(offset).limit(limit))
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
