from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.core.database import get_db
from app.core.auth import require_roles
from app.models.user import UserRole
from app.schemas.booking import BookingListResponse, BookingResponse
from app.schemas.lesson import LessonCompleteRequest, LessonNotesRequest
from app.services.lesson_service import LessonService
from app.services.policies import Actor
from app.api.v1.endpoints.bookings import to_booking_list

router = APIRouter()


@router.get("/completable", response_model=BookingListResponse)
async def list_completable_lessons(
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Confirmed lessons that have ended and are waiting to be marked completed"""
    result = await LessonService(db).list_completable(actor.id, page=page, limit=limit)
    return to_booking_list(result)


@router.get("/completed", response_model=BookingListResponse)
async def list_completed_lessons(
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    result = await LessonService(db).list_completed(actor.id, page=page, limit=limit)
    return to_booking_list(result)


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def mark_lesson_completed(
    booking_id: uuid.UUID,
    request: LessonCompleteRequest,
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Mark a lesson as taught, optionally with notes"""
    return await LessonService(db).mark_completed(
        actor,
        booking_id,
        lesson_notes=request.lesson_notes,
        next_steps=request.next_steps,
        student_progress=request.student_progress,
    )


@router.put("/{booking_id}/notes", response_model=BookingResponse)
async def update_lesson_notes(
    booking_id: uuid.UUID,
    request: LessonNotesRequest,
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Edit notes of a completed lesson"""
    return await LessonService(db).update_notes(
        actor,
        booking_id,
        lesson_notes=request.lesson_notes,
        next_steps=request.next_steps,
        student_progress=request.student_progress,
    )
