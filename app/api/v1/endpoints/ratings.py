from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.core.database import get_db
from app.core.auth import require_roles
from app.models.user import UserRole
from app.schemas.rating import RatingCreateRequest, RatingListResponse, RatingResponse, RatingSubmitResponse
from app.services.pagination import Page
from app.services.rating_service import RatingService
from app.services.policies import Actor

router = APIRouter()


def to_rating_list(page: Page) -> RatingListResponse:
    return RatingListResponse(
        ratings=[RatingResponse.model_validate(r) for r in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


@router.post("", response_model=RatingSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_rating(
    request: RatingCreateRequest,
    actor: Actor = Depends(require_roles(UserRole.STUDENT)),
    db: AsyncSession = Depends(get_db)
):
    """Rate the tutor of a completed lesson"""
    rating, aggregate = await RatingService(db).submit_rating(
        actor,
        tutor_id=request.tutor_id,
        booking_id=request.booking_id,
        rating=request.rating,
        comment=request.comment,
    )
    return RatingSubmitResponse(
        rating=RatingResponse.model_validate(rating),
        average_rating=aggregate.average_rating,
        total_ratings=aggregate.total_ratings,
    )


@router.get("/student", response_model=RatingListResponse)
async def list_my_ratings(
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    actor: Actor = Depends(require_roles(UserRole.STUDENT)),
    db: AsyncSession = Depends(get_db)
):
    """Ratings written by the current student"""
    result = await RatingService(db).list_student_ratings(actor.id, page=page, limit=limit)
    return to_rating_list(result)


@router.get("/tutor/{tutor_id}", response_model=RatingListResponse)
async def list_tutor_ratings(
    tutor_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    db: AsyncSession = Depends(get_db)
):
    result = await RatingService(db).list_tutor_ratings(tutor_id, page=page, limit=limit)
    return to_rating_list(result)
