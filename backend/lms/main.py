"""
FastAPI application entrypoint. Run with: uvicorn lms.main:app --reload --port 8000 (from backend/)

API base path: routes are mounted at root (no /api/v1 prefix).
  - Roles/users: /roles, /permissions/catalog, /users
  - Catalog: /categories, /courses, /sections, /modules, /lesson-contents, /questions
  - Learning: /enrollments, /quiz-attempts, /practice-test-attempts

Every request carries a Bearer JWT from the identity service; domain errors are returned as
{"detail": ..., "error": ..., "field": ...} with the status code the error class declares.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lms.config import settings
from lms.errors import LmsError
from lms.api.roles import router as roles_router, catalog_router
from lms.api.users import router as users_router
from lms.api.categories import router as categories_router
from lms.api.courses import router as courses_router
from lms.api.sections import router as sections_router
from lms.api.modules import router as modules_router
from lms.api.lesson_contents import router as lesson_contents_router
from lms.api.questions import router as questions_router
from lms.api.enrollments import router as enrollments_router
from lms.api.attempts import quiz_router, practice_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="LMS Back Office API",
    description="Courses, sections and modules; question bank; enrollments; graded quiz and practice-test attempts.",
    version="0.1.0",
)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(roles_router)
app.include_router(catalog_router)
app.include_router(users_router)
app.include_router(categories_router)
app.include_router(courses_router)
app.include_router(sections_router)
app.include_router(modules_router)
app.include_router(lesson_contents_router)
app.include_router(questions_router)
app.include_router(enrollments_router)
app.include_router(quiz_router)
app.include_router(practice_router)


@app.exception_handler(LmsError)
def handle_lms_error(request: Request, exc: LmsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup():
    """Init SQLite DB and seed built-in roles. Fail fast if production uses default SECRET_KEY."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _log = logging.getLogger("lms.main")
    if settings.is_production and (settings.secret_key or "").strip() == "change-me-in-production":
        _log.critical("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
        raise RuntimeError("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
    from lms.database import init_sqlite_db
    init_sqlite_db()
    _log.info("LMS API started (db=%s)", settings.database_url.split("@")[-1])


@app.get("/health")
def health():
    """Health check (JSON)."""
    return {"status": "ok", "message": "LMS Back Office API"}
