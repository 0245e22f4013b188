from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
import uuid


class RatingCreateRequest(BaseModel):
    tutor_id: uuid.UUID = Field(..., description="Tutor being rated")
    booking_id: uuid.UUID = Field(..., description="Completed booking the rating is for")
    rating: int = Field(..., description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, description="Optional review text")


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(..., description="Rating ID")
    student_id: uuid.UUID = Field(..., description="Student ID")
    tutor_id: uuid.UUID = Field(..., description="Tutor ID")
    booking_id: uuid.UUID = Field(..., description="Booking ID")
    rating: int = Field(..., description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, description="Review text")
    created_at: datetime = Field(..., description="Creation time")


class RatingSubmitResponse(BaseModel):
    rating: RatingResponse = Field(..., description="Stored rating")
    average_rating: float = Field(..., description="Tutor average after this rating")
    total_ratings: int = Field(..., description="Tutor rating count after this rating")


class RatingListResponse(BaseModel):
    ratings: List[RatingResponse] = Field(..., description="Ratings on this page")
    total: int = Field(..., description="Total ratings")
    page: int = Field(..., description="Current page")
    limit: int = Field(..., description="Page size")
    total_pages: int = Field(..., description="Number of pages")
