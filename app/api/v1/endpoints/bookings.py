from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
import uuid

from app.core.database import get_db
from app.core.auth import get_current_actor, require_roles
from app.models.booking import BookingStatus
from app.models.user import UserRole
from app.schemas.booking import (
    BookingAnalyticsResponse,
    BookingCancelRequest,
    BookingCreateRequest,
    BookingListResponse,
    BookingRescheduleRequest,
    BookingResponse,
    MeetingDetailsRequest,
    StatusUpdateRequest,
    TutorFeedbackRequest,
)
from app.services.booking_service import BookingService
from app.services.pagination import Page
from app.services.policies import Actor

router = APIRouter()


def to_booking_list(page: Page) -> BookingListResponse:
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    actor: Actor = Depends(require_roles(UserRole.STUDENT)),
    db: AsyncSession = Depends(get_db)
):
    """Request a lesson with a tutor"""
    booking = await BookingService(db).create_booking(
        actor,
        tutor_id=request.tutor_id,
        subject=request.subject,
        scheduled_date=request.scheduled_date,
        duration=request.duration,
        notes=request.notes,
        meeting_preference=request.meeting_preference,
        session_type=request.session_type,
    )
    return booking


@router.get("/student", response_model=BookingListResponse)
async def list_student_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status", description="Filter by status"),
    start_date: Optional[datetime] = Query(None, description="Scheduled on or after"),
    end_date: Optional[datetime] = Query(None, description="Scheduled on or before"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    actor: Actor = Depends(require_roles(UserRole.STUDENT)),
    db: AsyncSession = Depends(get_db)
):
    """Bookings of the current student, newest first"""
    result = await BookingService(db).list_student_bookings(
        actor.id, status=booking_status, start_date=start_date, end_date=end_date, page=page, limit=limit
    )
    return to_booking_list(result)


@router.get("/tutor", response_model=BookingListResponse)
async def list_tutor_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status", description="Filter by status"),
    start_date: Optional[datetime] = Query(None, description="Scheduled on or after"),
    end_date: Optional[datetime] = Query(None, description="Scheduled on or before"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Bookings assigned to the current tutor, newest first"""
    result = await BookingService(db).list_tutor_bookings(
        actor.id, status=booking_status, start_date=start_date, end_date=end_date, page=page, limit=limit
    )
    return to_booking_list(result)


@router.get("/analytics", response_model=BookingAnalyticsResponse, response_model_exclude_none=True)
async def get_booking_analytics(
    start_date: Optional[datetime] = Query(None, description="Scheduled on or after"),
    end_date: Optional[datetime] = Query(None, description="Scheduled on or before"),
    actor: Actor = Depends(require_roles(UserRole.STUDENT, UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Booking counts and totals for the current user"""
    return await BookingService(db).get_booking_analytics(actor, start_date=start_date, end_date=end_date)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await BookingService(db).get_booking(actor, booking_id)


@router.put("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: uuid.UUID,
    request: StatusUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Confirm, cancel or complete a booking"""
    return await BookingService(db).update_status(actor, booking_id, request.status, reason=request.reason)


@router.put("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: uuid.UUID,
    request: BookingRescheduleRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Move a booking to a new start time"""
    return await BookingService(db).reschedule_booking(
        actor, booking_id, request.new_scheduled_date, reason=request.reason
    )


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: uuid.UUID,
    request: BookingCancelRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a booking"""
    return await BookingService(db).cancel_booking(actor, booking_id, reason=request.reason)


@router.put("/{booking_id}/meeting", response_model=BookingResponse)
async def update_meeting_details(
    booking_id: uuid.UUID,
    request: MeetingDetailsRequest,
    actor: Actor = Depends(require_roles(UserRole.STUDENT, UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Set the meeting link or location"""
    return await BookingService(db).update_meeting_details(
        actor, booking_id, meeting_link=request.meeting_link, location=request.location
    )


@router.put("/{booking_id}/feedback", response_model=BookingResponse)
async def add_tutor_feedback(
    booking_id: uuid.UUID,
    request: TutorFeedbackRequest,
    actor: Actor = Depends(require_roles(UserRole.TUTOR)),
    db: AsyncSession = Depends(get_db)
):
    """Tutor feedback on a completed lesson"""
    return await BookingService(db).add_tutor_feedback(actor, booking_id, request.feedback)
