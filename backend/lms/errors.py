"""
Domain errors raised by the service layer. Each carries the HTTP status the API maps it to.
All are recoverable by the caller: the operation that raised has rolled back.
"""


class LmsError(Exception):
    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error": type(self).__name__}
        if self.field:
            body["field"] = self.field
        return body


class AuthorizationError(LmsError):
    status_code = 403

    def __init__(self, permission: str):
        super().__init__(f"Access denied: missing permission '{permission}'")
        self.permission = permission


class NotEnrolledError(LmsError):
    status_code = 403


class ValidationError(LmsError):
    status_code = 422


class UnknownPermissionGroupError(ValidationError):
    """Role references a permission group that is not in the static table."""


class NotFoundError(LmsError):
    status_code = 404

    def __init__(self, resource: str, resource_id=None):
        msg = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(msg)
        self.resource = resource


class CollisionError(LmsError):
    status_code = 409


class OrderMismatchError(LmsError):
    status_code = 409


class DuplicateContentError(LmsError):
    status_code = 409

    def __init__(self, message: str, content_ids: list | None = None):
        super().__init__(message, field="content_ids")
        self.content_ids = content_ids or []

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["content_ids"] = [str(c) for c in self.content_ids]
        return body


class AlreadyEnrolledError(LmsError):
    status_code = 409


class AttemptLimitError(LmsError):
    status_code = 409


class WindowClosedError(LmsError):
    status_code = 403


class InvalidStateError(LmsError):
    status_code = 409
