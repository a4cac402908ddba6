"""
Category, course and section schemas, plus the shared reorder request.
"""
from datetime import datetime
from typing import Literal
from pydantic import AliasChoices, BaseModel, Field, field_validator

Difficulty = Literal["beginner", "intermediate", "advanced"]
PublishStatus = Literal["draft", "published", "archived"]


class ReorderRequest(BaseModel):
    """Full sibling list in the new order. Accepts ordered_ids or orderedIds."""

    ordered_ids: list[str] = Field(validation_alias=AliasChoices("ordered_ids", "orderedIds"))


class ReorderResponse(BaseModel):
    items: list[dict]  # [{"id": ..., "order": n}, ...]


class CategoryCreate(BaseModel):
    name: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be blank")
        return v.strip()


class CategoryUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class CategoryResponse(BaseModel):
    id: str
    name: str
    description: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CourseCreate(BaseModel):
    title: str
    description: str = ""
    difficulty: Difficulty = "beginner"
    status: PublishStatus = "draft"
    content_type: Literal["course_lesson", "practice_test"] = "course_lesson"
    category_id: str | None = None
    teacher_id: str | None = None


class CourseUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    difficulty: Difficulty | None = None
    status: PublishStatus | None = None
    content_type: Literal["course_lesson", "practice_test"] | None = None
    category_id: str | None = None
    teacher_id: str | None = None


class SectionCreate(BaseModel):
    title: str
    description: str = ""
    order: int | None = None  # None -> append


class SectionUpdate(BaseModel):
    title: str | None = None
    description: str | None = None


class SectionResponse(BaseModel):
    id: str
    course_id: str
    order: int
    title: str
    description: str
    module_ids: list[str] = []

    class Config:
        from_attributes = True


class CourseResponse(BaseModel):
    id: str
    title: str
    description: str
    difficulty: str
    status: str
    content_type: str
    category_id: str | None
    teacher_id: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class CourseDetailResponse(CourseResponse):
    sections: list[SectionResponse]
