"""
Permission evaluation: static group table, role expansion, and the AuthContext passed to every core operation.

Permission strings are `resource:action` or `resource:action:scope`. Matching is exact; a bare
`read` means "read own", `read:all` means "read across owners". Roles grant group names, never
raw permission strings; groups are expanded once when the role is resolved.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable

from lms.errors import AuthorizationError, UnknownPermissionGroupError

logger = logging.getLogger(__name__)

PERMISSION_GROUPS: dict[str, list[str]] = {
    "manage_users": [
        "user:read",
        "user:read:all",
        "user:create",
        "user:update",
        "user:delete",
        "user:assign:roles",
    ],
    "manage_roles": [
        "role:create",
        "role:read",
        "role:read:all",
        "role:update",
        "role:updatePermission",
        "role:delete",
        "permission:read:all",
    ],
    "manage_categories": [
        "category:create",
        "category:read:all",
        "category:update",
        "category:delete",
    ],
    "view_catalog": [
        "category:read",
        "course:read",
        "section:read",
        "module:read",
        "lesson_content:read",
    ],
    "manage_courses": [
        "course:create",
        "course:read:all",
        "course:update",
        "course:delete",
        "section:create",
        "section:read:all",
        "section:update",
        "section:delete",
        "module:create",
        "module:read:all",
        "module:update",
        "module:delete",
    ],
    "manage_content": [
        "lesson_content:create",
        "lesson_content:read:all",
        "lesson_content:update",
        "lesson_content:delete",
        "question:create",
        "question:read",
        "question:read:all",
        "question:update",
        "question:delete",
    ],
    "manage_enrollments": [
        "admin:enrollment:create",
        "admin:enrollment:read",
        "admin:enrollment:update",
        "admin:enrollment:delete",
    ],
    "grade_attempts": [
        "quiz_attempt:read:all",
        "quiz_attempt:update",
        "quiz_attempt:delete",
        "practice_test:read:all",
        "practice_test:update",
        "practice_test:delete",
    ],
    "take_assessments": [
        "quiz_attempt:create",
        "quiz_attempt:read",
        "practice_test:create",
        "practice_test:read",
    ],
    "track_own_learning": [
        "enrollment:read",
        "enrollment:update",
    ],
}

DEFAULT_ROLES: dict[str, list[str]] = {
    "admin": list(PERMISSION_GROUPS),
    "teacher": [
        "view_catalog",
        "manage_courses",
        "manage_content",
        "manage_categories",
        "grade_attempts",
        "manage_enrollments",
    ],
    "student": ["view_catalog", "take_assessments", "track_own_learning"],
}


def validate_groups(group_names: Iterable[str]) -> list[str]:
    """Return the de-duplicated, sorted group names; raise UnknownPermissionGroupError on any unknown name."""
    names = sorted({(g or "").strip() for g in group_names})
    unknown = [g for g in names if g not in PERMISSION_GROUPS]
    if unknown:
        raise UnknownPermissionGroupError(
            f"Unknown permission group(s): {', '.join(unknown)}",
            field="permission_groups",
        )
    return names


def expand_groups(group_names: Iterable[str]) -> frozenset[str]:
    """Flatten group names into the set of permission strings they grant. Pure and order-independent."""
    perms: set[str] = set()
    for name in validate_groups(group_names):
        perms.update(PERMISSION_GROUPS[name])
    return frozenset(perms)


def has_permission(actor_permissions: Iterable[str], required: str) -> bool:
    """Exact-string membership. No wildcard or prefix expansion."""
    return required in set(actor_permissions)


def permission_catalog() -> dict[str, list[str]]:
    """Grouped permission table for the role-editing surface."""
    return {name: list(perms) for name, perms in PERMISSION_GROUPS.items()}


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity for one request: who is acting and what they may do."""

    user_id: uuid.UUID
    role_name: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has(self, permission: str) -> bool:
        return has_permission(self.permissions, permission)

    def require(self, permission: str) -> None:
        """Raise AuthorizationError unless the actor holds `permission`."""
        if not self.has(permission):
            logger.warning("Access denied: user=%s role=%s required=%s", self.user_id, self.role_name, permission)
            raise AuthorizationError(permission)

    def require_any(self, *permissions: str) -> str:
        """Return the first held permission of `permissions`, else raise for the first one."""
        for p in permissions:
            if self.has(p):
                return p
        self.require(permissions[0])
        return permissions[0]

    def require_owner_or_all(self, resource: str, action: str, owner_id) -> None:
        """`resource:action:all` passes for anyone's record; bare `resource:action` only for own records."""
        if self.has(f"{resource}:{action}:all"):
            return
        self.require(f"{resource}:{action}")
        if owner_id != self.user_id:
            logger.warning("Access denied: user=%s is not owner of %s record", self.user_id, resource)
            raise AuthorizationError(f"{resource}:{action}:all")


# Built-in roles are configuration: a typo in a group name must fail at import, not per request.
for _role, _groups in DEFAULT_ROLES.items():
    validate_groups(_groups)
