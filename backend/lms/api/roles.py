"""
Roles API: role CRUD, permission-group assignment and the permission catalog.
  GET/POST /roles, GET/PATCH/DELETE /roles/{id}, PUT /roles/{id}/permissions
  GET /permissions/catalog
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context
from lms.database import get_db
from lms.models.role import Role
from lms.permissions import AuthContext, expand_groups, permission_catalog
from lms.schemas.role import (
    PermissionCatalogResponse,
    RoleCreate,
    RolePermissionsUpdate,
    RoleRename,
    RoleResponse,
)
from lms.services import roles as role_service

router = APIRouter(prefix="/roles", tags=["roles"])
catalog_router = APIRouter(prefix="/permissions", tags=["roles"])


def _role_to_response(role: Role) -> RoleResponse:
    groups = list(role.permission_groups or [])
    return RoleResponse(
        id=str(role.id),
        name=role.name,
        permission_groups=groups,
        permissions=sorted(expand_groups(groups)),
    )


@catalog_router.get("/catalog", response_model=PermissionCatalogResponse)
def get_permission_catalog(ctx: AuthContext = Depends(get_auth_context)):
    """Group name -> permission strings, for the role editor."""
    ctx.require_any("permission:read:all", "role:read:all")
    return PermissionCatalogResponse(groups=permission_catalog())


@router.get("", response_model=list[RoleResponse])
def list_roles(ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return [_role_to_response(r) for r in role_service.list_roles(db, ctx)]


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(data: RoleCreate, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _role_to_response(role_service.create_role(db, ctx, data.name, data.permission_groups))


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(role_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _role_to_response(role_service.get_role(db, ctx, role_id))


@router.patch("/{role_id}", response_model=RoleResponse)
def rename_role(
    role_id: uuid.UUID,
    data: RoleRename,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _role_to_response(role_service.rename_role(db, ctx, role_id, data.name))


@router.put("/{role_id}/permissions", response_model=RoleResponse)
def update_role_permissions(
    role_id: uuid.UUID,
    data: RolePermissionsUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Replace the role's permission groups. Unknown group names -> 422."""
    return _role_to_response(role_service.update_role_permissions(db, ctx, role_id, data.permission_groups))


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    role_service.delete_role(db, ctx, role_id)
