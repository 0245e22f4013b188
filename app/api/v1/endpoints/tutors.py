from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.core.database import get_db
from app.models.tutor_profile import TutorProfile
from app.schemas.tutor import TutorDetailResponse, TutorListResponse, TutorSearchResponse
from app.services.tutor_service import TutorService

router = APIRouter()


def tutor_summary(tutor: TutorProfile) -> dict:
    return {
        "id": str(tutor.user_id),
        "name": tutor.user.full_name,
        "subjects": tutor.subjects or [],
        "hourly_rate": tutor.hourly_rate,
        "location": tutor.location,
        "average_rating": tutor.average_rating,
        "total_ratings": tutor.total_ratings,
        "is_verified": tutor.is_verified,
    }


@router.get("", response_model=TutorSearchResponse)
async def search_tutors(
    subject: Optional[str] = Query(None, description="Filter by subject"),
    location: Optional[str] = Query(None, description="Filter by location"),
    min_rate: Optional[float] = Query(None, ge=0, description="Minimum hourly rate"),
    max_rate: Optional[float] = Query(None, ge=0, description="Maximum hourly rate"),
    min_rating: Optional[float] = Query(None, ge=0, le=5, description="Minimum rating"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    db: AsyncSession = Depends(get_db)
):
    """List/search active tutors with filters"""
    result = await TutorService(db).search_tutors(
        subject=subject,
        location=location,
        min_rate=min_rate,
        max_rate=max_rate,
        min_rating=min_rating,
        page=page,
        limit=limit,
    )
    return TutorSearchResponse(
        tutors=[TutorListResponse(**tutor_summary(t)) for t in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/{tutor_id}", response_model=TutorDetailResponse)
async def get_tutor_profile(
    tutor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Get detailed tutor profile"""
    tutor = await TutorService(db).get_tutor(tutor_id)
    return TutorDetailResponse(
        **tutor_summary(tutor),
        bio=tutor.bio,
        education=tutor.education,
        experience_years=tutor.experience_years,
        languages=tutor.languages or [],
    )
