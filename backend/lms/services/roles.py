"""
Roles and users. Roles hold permission-group names only; unknown names are rejected when the role is
saved, so request-time evaluation never meets a bad group.
"""
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import CollisionError, NotFoundError, ValidationError
from lms.models.role import Role
from lms.models.user import User
from lms.permissions import AuthContext, expand_groups, validate_groups
from lms.services.auth import hash_password

logger = logging.getLogger(__name__)


def resolve_auth_context(user: User) -> AuthContext:
    """Expand the user's role into the context every core operation receives."""
    role = user.role
    return AuthContext(
        user_id=user.id,
        role_name=role.name,
        permissions=expand_groups(role.permission_groups or []),
    )


# --- Roles ----------------------------------------------------------------


def _get_role(db: Session, role_id: uuid.UUID) -> Role:
    role = db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role", role_id)
    return role


def _role_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Role name is required", field="name")
    return name


def list_roles(db: Session, ctx: AuthContext) -> list[Role]:
    ctx.require_any("role:read:all", "role:read")
    return db.query(Role).order_by(Role.name).all()


def get_role(db: Session, ctx: AuthContext, role_id: uuid.UUID) -> Role:
    ctx.require_any("role:read:all", "role:read")
    return _get_role(db, role_id)


def create_role(db: Session, ctx: AuthContext, name: str, permission_groups: list[str]) -> Role:
    ctx.require("role:create")
    name = _role_name(name)
    groups = validate_groups(permission_groups)
    if db.query(Role.id).filter(Role.name == name).first():
        raise CollisionError(f"Role '{name}' already exists", field="name")
    try:
        with transaction(db):
            role = Role(name=name, permission_groups=groups)
            db.add(role)
    except IntegrityError:
        raise CollisionError(f"Role '{name}' already exists", field="name")
    db.refresh(role)
    logger.info("Role %s created with groups %s", name, groups)
    return role


def rename_role(db: Session, ctx: AuthContext, role_id: uuid.UUID, name: str) -> Role:
    ctx.require("role:update")
    name = _role_name(name)
    try:
        with transaction(db):
            role = _get_role(db, role_id)
            clash = db.query(Role.id).filter(Role.name == name, Role.id != role_id).first()
            if clash:
                raise CollisionError(f"Role '{name}' already exists", field="name")
            role.name = name
    except IntegrityError:
        raise CollisionError(f"Role '{name}' already exists", field="name")
    db.refresh(role)
    return role


def update_role_permissions(db: Session, ctx: AuthContext, role_id: uuid.UUID, permission_groups: list[str]) -> Role:
    """Replace the role's group list. Takes effect for its users on their next request."""
    ctx.require("role:updatePermission")
    groups = validate_groups(permission_groups)
    with transaction(db):
        role = _get_role(db, role_id)
        role.permission_groups = groups
    db.refresh(role)
    logger.info("Role %s permission groups set to %s by %s", role.name, groups, ctx.user_id)
    return role


def delete_role(db: Session, ctx: AuthContext, role_id: uuid.UUID) -> None:
    ctx.require("role:delete")
    with transaction(db):
        role = _get_role(db, role_id)
        assigned = db.query(User.id).filter(User.role_id == role_id).count()
        if assigned:
            raise CollisionError(f"Role '{role.name}' is assigned to {assigned} user(s)")
        db.delete(role)
    logger.info("Role %s deleted by %s", role_id, ctx.user_id)


# --- Users ----------------------------------------------------------------


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def create_user(db: Session, ctx: AuthContext, email: str, password: str, role_id: uuid.UUID, name: str = "") -> User:
    ctx.require("user:create")
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required", field="email")
    if not password:
        raise ValidationError("Password is required", field="password")
    _get_role(db, role_id)
    if db.query(User.id).filter(User.email == email).first():
        raise CollisionError("Email already registered", field="email")
    try:
        with transaction(db):
            user = User(email=email, name=(name or "").strip(), password_hash=hash_password(password), role_id=role_id)
            db.add(user)
    except IntegrityError:
        raise CollisionError("Email already registered", field="email")
    db.refresh(user)
    logger.info("User %s created by %s", user.id, ctx.user_id)
    return user


def get_user(db: Session, ctx: AuthContext, user_id: uuid.UUID) -> User:
    user = _get_user(db, user_id)
    ctx.require_owner_or_all("user", "read", user.id)
    return user


def list_users(db: Session, ctx: AuthContext, role_id: uuid.UUID | None = None) -> list[User]:
    ctx.require("user:read:all")
    q = db.query(User)
    if role_id is not None:
        q = q.filter(User.role_id == role_id)
    return q.order_by(User.email).all()


def update_user(db: Session, ctx: AuthContext, user_id: uuid.UUID, data: dict) -> User:
    """Name and password. Role changes go through change_user_role."""
    ctx.require("user:update")
    with transaction(db):
        user = _get_user(db, user_id)
        if data.get("name") is not None:
            user.name = data["name"].strip()
        if data.get("password"):
            user.password_hash = hash_password(data["password"])
    db.refresh(user)
    return user


def change_user_role(db: Session, ctx: AuthContext, user_id: uuid.UUID, role_id: uuid.UUID) -> User:
    ctx.require("user:assign:roles")
    with transaction(db):
        user = _get_user(db, user_id)
        role = _get_role(db, role_id)
        user.role_id = role.id
    db.refresh(user)
    logger.info("User %s assigned role %s by %s", user_id, role_id, ctx.user_id)
    return user


def delete_user(db: Session, ctx: AuthContext, user_id: uuid.UUID) -> None:
    ctx.require("user:delete")
    if user_id == ctx.user_id:
        raise ValidationError("You cannot delete your own account", field="user_id")
    with transaction(db):
        user = _get_user(db, user_id)
        db.delete(user)
    logger.info("User %s deleted by %s", user_id, ctx.user_id)
