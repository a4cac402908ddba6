"""
Module schemas. Requests are a union discriminated by module_type, so each variant only accepts its
own fields; responses flatten every variant column (None where it does not apply).
"""
from datetime import datetime
from typing import Annotated, Literal, Union
from pydantic import BaseModel, Field, field_validator

PublishStatus = Literal["draft", "published", "archived"]


class _ModuleBase(BaseModel):
    title: str
    description: str = ""
    status: PublishStatus = "draft"
    order: int | None = None  # None -> append (or keep position on update)
    section_id: str | None = None  # None -> standalone

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be blank")
        return v.strip()


class LessonModulePayload(_ModuleBase):
    module_type: Literal["lesson"]
    content_ids: list[str]
    progress_bar: bool = False


class QuizQuestionEntry(BaseModel):
    question_id: str
    points: int = 1

    @field_validator("points")
    @classmethod
    def points_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("points cannot be negative")
        return v


class QuizModulePayload(_ModuleBase):
    module_type: Literal["quiz"]
    questions: list[QuizQuestionEntry]
    questions_per_page: int = 1
    question_navigation: Literal["sequence", "free"] = "sequence"
    question_shuffle: bool = False
    shuffle_options: bool = False
    max_attempts: int = -1
    time_limit_minutes: int | None = None
    passing_score_percentage: int = 0
    available_from: datetime | None = None
    available_until: datetime | None = None
    direction: str = ""
    timer_end_behavior: Literal["auto-submit", "strict-zero-score"] = "auto-submit"


class TestModulePayload(_ModuleBase):
    module_type: Literal["test"]
    quiz_module_ids: list[str]
    is_sat: bool = False


ModulePayload = Annotated[
    Union[LessonModulePayload, QuizModulePayload, TestModulePayload],
    Field(discriminator="module_type"),
]


class AttachQuizRequest(BaseModel):
    quiz_module_id: str


class QuizQuestionResponse(BaseModel):
    question_id: str
    points: int
    order: int


class ModuleResponse(BaseModel):
    id: str
    module_type: str
    title: str
    description: str
    status: str
    section_id: str | None
    course_id: str | None
    order: int
    # lesson
    content_ids: list[str] | None = None
    progress_bar: bool | None = None
    # quiz
    questions: list[QuizQuestionResponse] | None = None
    questions_per_page: int | None = None
    question_navigation: str | None = None
    question_shuffle: bool | None = None
    shuffle_options: bool | None = None
    max_attempts: int | None = None
    time_limit_minutes: int | None = None
    passing_score_percentage: int | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None
    direction: str | None = None
    timer_end_behavior: str | None = None
    # test
    quiz_module_ids: list[str] | None = None
    is_sat: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
