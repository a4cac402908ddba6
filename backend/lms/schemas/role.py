"""
Role, user and permission-catalog schemas.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, field_validator


class RoleCreate(BaseModel):
    name: str
    permission_groups: list[str] = []


class RoleRename(BaseModel):
    name: str


class RolePermissionsUpdate(BaseModel):
    permission_groups: list[str]


class RoleResponse(BaseModel):
    id: str
    name: str
    permission_groups: list[str]
    permissions: list[str]  # expanded, sorted

    class Config:
        from_attributes = True


class PermissionCatalogResponse(BaseModel):
    groups: dict[str, list[str]]


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: str = ""
    role_id: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes (bcrypt limit)")
        return v


class UserUpdate(BaseModel):
    name: str | None = None
    password: str | None = None

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str | None) -> str | None:
        if v is not None and len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes (bcrypt limit)")
        return v


class UserRoleUpdate(BaseModel):
    role_id: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role_id: str
    role: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MeResponse(UserResponse):
    permissions: list[str]
