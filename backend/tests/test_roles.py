"""
Roles, users and categories through the service layer.
"""
import pytest

from lms.errors import AuthorizationError, CollisionError, UnknownPermissionGroupError, ValidationError
from lms.models.course import Course
from lms.models.role import Role
from lms.services import categories, content_graph, roles
from lms.services.auth import verify_password


def test_create_role_rejects_unknown_group(db, admin):
    with pytest.raises(UnknownPermissionGroupError) as exc:
        roles.create_role(db, admin[1], "auditor", ["view_catalog", "read_everything"])
    assert exc.value.field == "permission_groups"
    assert db.query(Role).filter(Role.name == "auditor").count() == 0


def test_duplicate_role_name(db, admin):
    roles.create_role(db, admin[1], "auditor", ["view_catalog"])
    with pytest.raises(CollisionError):
        roles.create_role(db, admin[1], "auditor", [])


def test_permission_edit_applies_on_next_resolve(db, admin, make_user):
    user, ctx = make_user("teacher")
    assert ctx.has("course:create")

    roles.update_role_permissions(db, admin[1], user.role_id, ["view_catalog"])

    db.refresh(user)
    fresh = roles.resolve_auth_context(user)
    assert not fresh.has("course:create")
    with pytest.raises(AuthorizationError):
        content_graph.create_course(db, fresh, {"title": "Blocked"})


def test_role_in_use_cannot_be_deleted(db, admin, student):
    with pytest.raises(CollisionError):
        roles.delete_role(db, admin[1], student[0].role_id)
    empty = roles.create_role(db, admin[1], "unused", [])
    roles.delete_role(db, admin[1], empty.id)
    assert db.get(Role, empty.id) is None


def test_create_user_normalizes_email_and_hashes(db, admin, student):
    user = roles.create_user(db, admin[1], "  New.Person@Example.com ", "s3cret-pass", student[0].role_id, "New")
    assert user.email == "new.person@example.com"
    assert verify_password("s3cret-pass", user.password_hash)
    with pytest.raises(CollisionError) as exc:
        roles.create_user(db, admin[1], "new.person@example.com", "other", student[0].role_id)
    assert exc.value.field == "email"


def test_students_read_only_themselves(db, student, make_user):
    other, _ = make_user("student")
    assert roles.get_user(db, student[1], student[0].id).id == student[0].id
    with pytest.raises(AuthorizationError):
        roles.get_user(db, student[1], other.id)
    with pytest.raises(AuthorizationError):
        roles.list_users(db, student[1])


def test_cannot_delete_self(db, admin):
    with pytest.raises(ValidationError):
        roles.delete_user(db, admin[1], admin[0].id)


def test_change_role_requires_assign_permission(db, admin, teacher, student):
    with pytest.raises(AuthorizationError):
        roles.change_user_role(db, teacher[1], student[0].id, teacher[0].role_id)
    updated = roles.change_user_role(db, admin[1], student[0].id, teacher[0].role_id)
    assert updated.role.name == "teacher"


def test_category_names_unique_and_delete_detaches_courses(db, admin, factory):
    science = categories.create_category(db, admin[1], "Science")
    with pytest.raises(CollisionError):
        categories.create_category(db, admin[1], "Science")
    course = factory.course(category_id=science.id)

    categories.delete_category(db, admin[1], science.id)

    db.expire_all()
    assert db.get(Course, course.id).category_id is None
