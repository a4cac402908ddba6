"""
Enrollment schemas.
"""
from datetime import datetime
from typing import Literal
from pydantic import BaseModel


class EnrollRequest(BaseModel):
    user_id: str
    course_id: str


class EnrollmentStatusUpdate(BaseModel):
    status: Literal["enrolled", "in-progress", "completed", "dropped"]


class CompleteContentRequest(BaseModel):
    content_id: str


class CompleteModuleRequest(BaseModel):
    module_id: str


class EnrollmentResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    status: str
    enrollment_date: datetime | None
    last_accessed_at: datetime | None
    progress_percentage: int
    completed_content_ids: list[str]
    completed_module_ids: list[str]

    class Config:
        from_attributes = True
