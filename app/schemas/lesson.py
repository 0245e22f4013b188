from pydantic import BaseModel, Field
from typing import Optional


class LessonCompleteRequest(BaseModel):
    lesson_notes: Optional[str] = Field(None, description="What was covered")
    next_steps: Optional[str] = Field(None, description="Homework or focus for the next lesson")
    student_progress: Optional[str] = Field(None, description="Progress assessment")


class LessonNotesRequest(BaseModel):
    lesson_notes: Optional[str] = Field(None, description="What was covered")
    next_steps: Optional[str] = Field(None, description="Homework or focus for the next lesson")
    student_progress: Optional[str] = Field(None, description="Progress assessment")
