"""
Users API: GET /users/me, user CRUD and role assignment (PUT /users/{id}/role).
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, get_current_user, parse_uuid
from lms.database import get_db
from lms.models.user import User
from lms.permissions import AuthContext
from lms.schemas.role import MeResponse, UserCreate, UserResponse, UserRoleUpdate, UserUpdate
from lms.services import roles as role_service

router = APIRouter(prefix="/users", tags=["users"])


def _user_to_response(u: User) -> UserResponse:
    return UserResponse(
        id=str(u.id),
        email=u.email,
        name=u.name or "",
        role_id=str(u.role_id),
        role=u.role.name if u.role else "",
        created_at=u.created_at,
    )


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user), ctx: AuthContext = Depends(get_auth_context)):
    """Current user with the expanded permission list the UI gates on."""
    base = _user_to_response(user)
    return MeResponse(**base.model_dump(), permissions=sorted(ctx.permissions))


@router.get("", response_model=list[UserResponse])
def list_users(
    role_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    users = role_service.list_users(db, ctx, role_id=parse_uuid(role_id, "role_id"))
    return [_user_to_response(u) for u in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    user = role_service.create_user(
        db, ctx, email=data.email, password=data.password, role_id=parse_uuid(data.role_id, "role_id"), name=data.name
    )
    return _user_to_response(user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _user_to_response(role_service.get_user(db, ctx, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    data: UserUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _user_to_response(role_service.update_user(db, ctx, user_id, data.model_dump(exclude_unset=True)))


@router.put("/{user_id}/role", response_model=UserResponse)
def change_user_role(
    user_id: uuid.UUID,
    data: UserRoleUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user = role_service.change_user_role(db, ctx, user_id, parse_uuid(data.role_id, "role_id"))
    return _user_to_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    role_service.delete_user(db, ctx, user_id)
