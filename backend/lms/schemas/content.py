"""
Lesson content and question-bank schemas.
"""
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, field_validator

QuestionType = Literal["multipleChoice", "trueFalse", "shortAnswer", "fillInTheBlank"]


class LessonContentCreate(BaseModel):
    title: str
    content_type: Literal["text", "html", "video", "file"] = "text"
    body: str = ""


class LessonContentUpdate(BaseModel):
    title: str | None = None
    content_type: Literal["text", "html", "video", "file"] | None = None
    body: str | None = None


class LessonContentResponse(BaseModel):
    id: str
    title: str
    content_type: str
    body: str
    created_by: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class QuestionOption(BaseModel):
    text: str
    isCorrect: bool = False


class QuestionCreate(BaseModel):
    title: str
    body: str
    question_type: QuestionType
    options: list[QuestionOption] | None = None
    true_false_answer: bool | None = None
    text_answer: str | None = None
    case_sensitive: bool = False
    requires_manual_grading: bool = False
    feedback: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    tags: list[str] = []
    category_id: str | None = None
    status: Literal["draft", "published", "archived"] = "draft"

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]


class QuestionUpdate(BaseModel):
    title: str | None = None
    body: str | None = None
    question_type: QuestionType | None = None
    options: list[QuestionOption] | None = None
    true_false_answer: bool | None = None
    text_answer: str | None = None
    case_sensitive: bool | None = None
    requires_manual_grading: bool | None = None
    feedback: str | None = None
    difficulty: Literal["easy", "medium", "hard"] | None = None
    tags: list[str] | None = None
    category_id: str | None = None
    status: Literal["draft", "published", "archived"] | None = None


class QuestionResponse(BaseModel):
    id: str
    title: str
    body: str
    question_type: str
    options: list[dict] | None
    true_false_answer: bool | None
    text_answer: str | None
    case_sensitive: bool
    requires_manual_grading: bool
    feedback: str
    difficulty: str
    tags: list[str]
    category_id: str | None
    status: str
    created_by: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
