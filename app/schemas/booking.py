from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
import uuid

from app.models.booking import (
    BookingStatus,
    DisputeStatus,
    MeetingPreference,
    PaymentStatus,
    SessionType,
)
from app.models.user import UserRole


class BookingCreateRequest(BaseModel):
    tutor_id: uuid.UUID = Field(..., description="Tutor user ID")
    subject: str = Field(..., min_length=1, description="Subject for the lesson")
    scheduled_date: datetime = Field(..., description="Lesson start time")
    duration: float = Field(..., description="Lesson length in hours")
    notes: Optional[str] = Field(None, description="Additional notes for the tutor")
    meeting_preference: Optional[MeetingPreference] = Field(None, description="Preferred meeting tool")
    session_type: Optional[SessionType] = Field(None, description="Online or in person")


class StatusUpdateRequest(BaseModel):
    status: BookingStatus = Field(..., description="Target status")
    reason: Optional[str] = Field(None, description="Reason, used for cancellations")


class BookingRescheduleRequest(BaseModel):
    new_scheduled_date: datetime = Field(..., description="New lesson start time")
    reason: Optional[str] = Field(None, description="Reschedule reason")


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Cancellation reason")


class MeetingDetailsRequest(BaseModel):
    meeting_link: Optional[str] = Field(None, description="http(s) link to the online meeting")
    location: Optional[str] = Field(None, description="Meeting place for in-person lessons")


class TutorFeedbackRequest(BaseModel):
    feedback: str = Field(..., min_length=1, description="Tutor feedback for the student")


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(..., description="Booking ID")
    student_id: uuid.UUID = Field(..., description="Student ID")
    tutor_id: uuid.UUID = Field(..., description="Tutor ID")
    subject: str = Field(..., description="Subject")
    scheduled_date: datetime = Field(..., description="Scheduled start")
    start_time: datetime = Field(..., description="Session start time")
    end_time: datetime = Field(..., description="Session end time")
    duration: float = Field(..., description="Length in hours")
    hourly_rate: float = Field(..., description="Tutor rate at booking time")
    total_amount: float = Field(..., description="duration x hourly rate")
    status: BookingStatus = Field(..., description="Booking status")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    session_type: SessionType = Field(..., description="Online or in person")
    meeting_preference: MeetingPreference = Field(..., description="Preferred meeting tool")
    meeting_link: Optional[str] = Field(None, description="Meeting link")
    location: Optional[str] = Field(None, description="Meeting location")
    notes: Optional[str] = Field(None, description="Student notes")
    tutor_feedback: Optional[str] = Field(None, description="Tutor feedback")
    cancellation_reason: Optional[str] = Field(None, description="Cancellation reason")
    cancelled_by: Optional[UserRole] = Field(None, description="Role that cancelled")
    cancelled_at: Optional[datetime] = Field(None, description="Cancellation time")
    original_scheduled_date: Optional[datetime] = Field(None, description="Start time before the last reschedule")
    reschedule_reason: Optional[str] = Field(None, description="Reschedule reason")
    rescheduled_by: Optional[UserRole] = Field(None, description="Role that rescheduled")
    completed_at: Optional[datetime] = Field(None, description="Completion time")
    lesson_notes: str = Field("", description="Lesson notes")
    next_steps: str = Field("", description="Next steps for the student")
    student_progress: str = Field("", description="Progress assessment")
    notes_updated_at: Optional[datetime] = Field(None, description="Last notes update")
    dispute_status: Optional[DisputeStatus] = Field(None, description="Dispute status")
    admin_notes: Optional[str] = Field(None, description="Admin notes")
    dispute_resolution: Optional[str] = Field(None, description="Dispute resolution")
    refund_amount: Optional[float] = Field(None, description="Refunded amount")
    created_at: datetime = Field(..., description="Creation time")
    updated_at: datetime = Field(..., description="Last update time")


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse] = Field(..., description="Bookings on this page")
    total: int = Field(..., description="Total matching bookings")
    page: int = Field(..., description="Current page")
    limit: int = Field(..., description="Page size")
    total_pages: int = Field(..., description="Number of pages")


class BookingAnalyticsResponse(BaseModel):
    total_bookings: int = Field(..., description="All bookings in range")
    pending_bookings: int = Field(0, description="Pending bookings")
    confirmed_bookings: int = Field(0, description="Confirmed bookings")
    completed_bookings: int = Field(0, description="Completed bookings")
    cancelled_bookings: int = Field(0, description="Cancelled bookings")
    rescheduled_bookings: int = Field(0, description="Rescheduled bookings")
    total_earnings: Optional[float] = Field(None, description="Tutor earnings from completed lessons")
    total_spent: Optional[float] = Field(None, description="Student spend on completed lessons")
    completion_rate: float = Field(..., description="Completed share in percent")
    cancellation_rate: float = Field(..., description="Cancelled share in percent")


class DisputeResolutionRequest(BaseModel):
    dispute_status: DisputeStatus = Field(..., description="Decision on the dispute")
    admin_notes: Optional[str] = Field(None, description="Internal admin notes")
    resolution: Optional[str] = Field(None, description="Resolution shown to the parties")
    refund_amount: Optional[float] = Field(None, ge=0, description="Amount refunded to the student")
