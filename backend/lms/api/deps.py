"""
Shared dependencies: get_current_user from Bearer token, and the AuthContext every route hands to
the service layer.
"""
import logging
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from lms.database import get_db
from lms.errors import ValidationError
from lms.models.user import User
from lms.models.types import coerce_uuid
from lms.permissions import AuthContext
from lms.services.auth import decode_access_token
from lms.services.roles import resolve_auth_context

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Require valid Bearer token; return User or 401."""
    if not credentials or not (getattr(credentials, "credentials", None) or "").strip():
        logger.debug("Auth failed: no Bearer token in request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Send header: Authorization: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        logger.debug("Auth failed: invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_auth_context(user: User = Depends(get_current_user)) -> AuthContext:
    """Permissions are expanded from the role on every request, so role edits apply immediately."""
    return resolve_auth_context(user)


def parse_uuid(value: str | None, field: str) -> UUID | None:
    """Path/body ids arrive as strings; a malformed one is a 422 naming the field."""
    if value is None:
        return None
    try:
        return coerce_uuid(value)
    except ValueError:
        raise ValidationError(f"Invalid id '{value}'", field=field)
