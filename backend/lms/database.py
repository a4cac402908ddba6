"""
SQLAlchemy engine and session. Supports PostgreSQL and SQLite (for local testing without Docker).
Sync usage; every core mutation runs inside transaction() so it commits whole or not at all.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from lms.config import settings

logger = logging.getLogger(__name__)

_is_sqlite = "sqlite" in settings.database_url
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
engine = create_engine(
    settings.database_url,
    pool_pre_ping=not _is_sqlite,
    connect_args=_connect_args,
    echo=False,  # Set True for SQL logging during development
)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE unless foreign keys are switched on per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


@contextmanager
def transaction(db: Session):
    """Commit on success, roll back on any exception and re-raise. One call = one atomic unit."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_sqlite_db():
    """When using SQLite: create tables and seed built-in roles. Call once at app startup."""
    if not _is_sqlite:
        return
    # Import all models so they register with Base before create_all
    from lms import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    if settings.seed_default_roles:
        seed_default_roles()


def seed_default_roles():
    """Insert admin/teacher/student roles when absent. Existing roles are left as they are."""
    from lms.models.role import Role
    from lms.permissions import DEFAULT_ROLES

    db = SessionLocal()
    try:
        existing = {name for (name,) in db.query(Role.name).all()}
        added = 0
        for name, groups in DEFAULT_ROLES.items():
            if name in existing:
                continue
            db.add(Role(name=name, permission_groups=sorted(groups)))
            added += 1
        db.commit()
        if added:
            logger.info("Seeded %s built-in role(s)", added)
    except Exception as e:
        logger.warning("Role seed failed: %s", e)
        db.rollback()
    finally:
        db.close()


def get_db():
    """Dependency: yield a DB session, close after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
