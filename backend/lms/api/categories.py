"""
Categories API: /categories CRUD.
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context
from lms.database import get_db
from lms.models.course import Category
from lms.permissions import AuthContext
from lms.schemas.course import CategoryCreate, CategoryResponse, CategoryUpdate
from lms.services import categories as category_service

router = APIRouter(prefix="/categories", tags=["categories"])


def _category_to_response(c: Category) -> CategoryResponse:
    return CategoryResponse(id=str(c.id), name=c.name, description=c.description, created_at=c.created_at)


@router.get("", response_model=list[CategoryResponse])
def list_categories(ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return [_category_to_response(c) for c in category_service.list_categories(db, ctx)]


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(data: CategoryCreate, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _category_to_response(category_service.create_category(db, ctx, data.name, data.description))


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _category_to_response(category_service.get_category(db, ctx, category_id))


@router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: uuid.UUID,
    data: CategoryUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    category = category_service.update_category(db, ctx, category_id, data.model_dump(exclude_unset=True))
    return _category_to_response(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    category_service.delete_category(db, ctx, category_id)
