from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.schemas.booking import BookingResponse


class DashboardStats(BaseModel):
    total_bookings: int = Field(..., description="All bookings made by the student")
    completed_lessons: int = Field(..., description="Completed lessons")
    total_spent: float = Field(..., description="Spend on completed lessons")
    favorite_tutors_count: int = Field(..., description="Number of favourite tutors listed")


class FavoriteTutor(BaseModel):
    tutor_id: str = Field(..., description="Tutor user ID")
    name: str = Field(..., description="Tutor name")
    subjects: List[str] = Field(default_factory=list, description="Subjects taught")
    average_rating: float = Field(..., description="Average rating")
    lessons: int = Field(..., description="Confirmed or completed lessons with this tutor")


class ActivityItem(BaseModel):
    type: str = Field(..., description="booking or rating")
    action: str = Field(..., description="Human readable summary")
    date: datetime = Field(..., description="When it happened")
    status: Optional[str] = Field(None, description="Booking status for booking entries")


class StudentDashboardResponse(BaseModel):
    stats: DashboardStats
    upcoming_lessons: List[BookingResponse] = Field(..., description="Next confirmed lessons")
    favorite_tutors: List[FavoriteTutor] = Field(..., description="Most booked tutors")
    recent_activity: List[ActivityItem] = Field(..., description="Latest bookings and ratings")
