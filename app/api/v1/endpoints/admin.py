from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
import uuid

from app.core.database import get_db
from app.core.auth import require_roles
from app.models.booking import BookingStatus
from app.models.user import UserRole
from app.schemas.admin import AccountStatusResponse, DeactivationRequest
from app.schemas.booking import BookingListResponse, BookingResponse, DisputeResolutionRequest
from app.services.admin_service import AdminService
from app.services.policies import Actor
from app.api.v1.endpoints.bookings import to_booking_list

router = APIRouter()

require_admin = require_roles(UserRole.ADMIN)


def account_status(account, account_id: uuid.UUID, cancelled: int = 0) -> AccountStatusResponse:
    return AccountStatusResponse(
        id=str(account_id),
        is_active=account.is_active,
        deactivation_reason=account.deactivation_reason,
        deactivated_at=account.deactivated_at,
        reactivated_at=account.reactivated_at,
        cancelled_bookings=cancelled,
    )


@router.get("/bookings", response_model=BookingListResponse)
async def list_all_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status", description="Filter by status"),
    start_date: Optional[datetime] = Query(None, description="Scheduled on or after"),
    end_date: Optional[datetime] = Query(None, description="Scheduled on or before"),
    search: Optional[str] = Query(None, description="Student, tutor or subject"),
    sort_by: str = Query("scheduled_date", description="scheduled_date, created_at or total_amount"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$", description="asc or desc"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, description="Page size"),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """All bookings on the platform"""
    result = await AdminService(db).list_all_bookings(
        status=booking_status,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return to_booking_list(result)


@router.put("/bookings/{booking_id}/dispute", response_model=BookingResponse)
async def resolve_dispute(
    booking_id: uuid.UUID,
    request: DisputeResolutionRequest,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Record the outcome of a booking dispute"""
    return await AdminService(db).resolve_dispute(
        actor,
        booking_id,
        dispute_status=request.dispute_status,
        admin_notes=request.admin_notes,
        resolution=request.resolution,
        refund_amount=request.refund_amount,
    )


@router.put("/users/{user_id}/deactivate", response_model=AccountStatusResponse)
async def deactivate_user(
    user_id: uuid.UUID,
    request: DeactivationRequest,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Block a user and cancel their upcoming lessons"""
    user, cancelled = await AdminService(db).deactivate_user(actor, user_id, reason=request.reason)
    return account_status(user, user.id, cancelled)


@router.put("/users/{user_id}/activate", response_model=AccountStatusResponse)
async def activate_user(
    user_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await AdminService(db).activate_user(actor, user_id)
    return account_status(user, user.id)


@router.put("/tutors/{tutor_id}/deactivate", response_model=AccountStatusResponse)
async def deactivate_tutor(
    tutor_id: uuid.UUID,
    request: DeactivationRequest,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Hide a tutor and cancel the tutor's upcoming lessons"""
    tutor, cancelled = await AdminService(db).deactivate_tutor(actor, tutor_id, reason=request.reason)
    return account_status(tutor, tutor.user_id, cancelled)


@router.put("/tutors/{tutor_id}/activate", response_model=AccountStatusResponse)
async def activate_tutor(
    tutor_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    tutor = await AdminService(db).activate_tutor(actor, tutor_id)
    return account_status(tutor, tutor.user_id)
