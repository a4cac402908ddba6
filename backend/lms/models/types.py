"""
DB types that work on both SQLite (local runs and tests) and PostgreSQL.
Ids are stored as 36-char strings and surface as uuid.UUID on the Python side.
"""
import uuid
from sqlalchemy import String, TypeDecorator


def coerce_uuid(value) -> uuid.UUID:
    """uuid.UUID from a UUID or its string form. Raises ValueError on anything else."""
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class UuidType(TypeDecorator):
    """UUID that stores as string(36) so it works on SQLite and PostgreSQL."""
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Normalises str ids from request bodies so lookups match stored values
        return str(coerce_uuid(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return coerce_uuid(value)
