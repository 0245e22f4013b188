from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.auth import require_roles
from app.models.user import UserRole
from app.schemas.booking import BookingResponse
from app.schemas.dashboard import StudentDashboardResponse
from app.services.dashboard_service import DashboardService
from app.services.policies import Actor

router = APIRouter()


@router.get("/student", response_model=StudentDashboardResponse)
async def get_student_dashboard(
    actor: Actor = Depends(require_roles(UserRole.STUDENT)),
    db: AsyncSession = Depends(get_db)
):
    """Stats, upcoming lessons, favourite tutors and recent activity"""
    dashboard = await DashboardService(db).get_student_dashboard(actor.id)
    dashboard["upcoming_lessons"] = [BookingResponse.model_validate(b) for b in dashboard["upcoming_lessons"]]
    return StudentDashboardResponse(**dashboard)
