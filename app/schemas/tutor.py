from pydantic import BaseModel, Field
from typing import Optional, List


class TutorListResponse(BaseModel):
    id: str = Field(..., description="Tutor user ID")
    name: str = Field(..., description="Tutor name")
    subjects: List[str] = Field(..., description="Subjects taught")
    hourly_rate: float = Field(..., description="Hourly rate")
    location: Optional[str] = Field(None, description="Tutor location")
    average_rating: float = Field(..., description="Average rating")
    total_ratings: int = Field(..., description="Number of ratings")
    is_verified: bool = Field(..., description="Whether the profile is verified")


class TutorDetailResponse(TutorListResponse):
    bio: Optional[str] = Field(None, description="Tutor bio")
    education: Optional[str] = Field(None, description="Education background")
    experience_years: int = Field(..., description="Years of experience")
    languages: List[str] = Field(default_factory=list, description="Languages spoken")


class TutorSearchResponse(BaseModel):
    tutors: List[TutorListResponse] = Field(..., description="Tutors on this page")
    total: int = Field(..., description="Total matching tutors")
    page: int = Field(..., description="Current page")
    limit: int = Field(..., description="Page size")
    total_pages: int = Field(..., description="Number of pages")
