"""
Quiz and practice-test attempt schemas.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, field_validator


class StartAttemptRequest(BaseModel):
    module_id: str


class SubmitAttemptRequest(BaseModel):
    # question_id -> response (option index / list of indices, bool, or text)
    answers: dict[str, Any] = {}


class ManualGradeRequest(BaseModel):
    question_id: str
    points_earned: int
    notes: str | None = None

    @field_validator("points_earned")
    @classmethod
    def points_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("points_earned cannot be negative")
        return v


class AttemptDetail(BaseModel):
    question_id: str
    quiz_module_id: str
    question_type: str
    points_possible: int
    response: Any = None
    is_correct: bool
    points_awarded: int
    requires_manual_review: bool
    is_manually_graded: bool
    grader_id: str | None = None
    grader_notes: str = ""


class QuizAttemptResponse(BaseModel):
    id: str
    user_id: str
    module_id: str
    enrollment_id: str | None
    attempt_number: int
    status: str
    score: int
    total_points_possible: int
    passed: bool
    details: list[AttemptDetail]
    started_at: datetime | None
    submitted_at: datetime | None
    graded_at: datetime | None

    class Config:
        from_attributes = True


class SectionScore(BaseModel):
    module_id: str
    title: str
    score: int
    total_possible: int


class SatScoreDetails(BaseModel):
    raw_score_reading_writing: int
    raw_score_math: int
    scaled_score_reading_writing: int
    scaled_score_math: int
    total_sat_score: int


class PracticeTestAttemptResponse(BaseModel):
    id: str
    user_id: str
    module_id: str
    enrollment_id: str | None
    attempt_number: int
    status: str
    section_scores: list[SectionScore]
    overall_score: int
    overall_total_points: int
    sat_score_details: SatScoreDetails | None
    details: list[AttemptDetail]
    started_at: datetime | None
    submitted_at: datetime | None
    graded_at: datetime | None

    class Config:
        from_attributes = True
