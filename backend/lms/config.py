"""
Application configuration from environment variables.
Loads .env from the backend directory so settings are found regardless of cwd.
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env next to backend/ (parent of lms/): load explicitly so values are set even when run from repo root
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    from dotenv import load_dotenv
    load_dotenv(_ENV_FILE, override=False)
else:
    # Fallback: try backend/.env relative to cwd (e.g. when running from repo root)
    import os
    _cwd_env = Path(os.getcwd()) / "backend" / ".env"
    if _cwd_env.exists():
        from dotenv import load_dotenv
        load_dotenv(_cwd_env, override=False)


class Settings(BaseSettings):
    """Load and validate config from env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: sqlite for local runs and tests, postgresql for production
    database_url: str = "sqlite:///./lms_dev.db"

    # Environment: set ENV=production in production; used to enforce SECRET_KEY.
    env: str = ""

    # JWT issued by the identity service; we only decode. Shared secret.
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24

    # CORS: comma-separated origins
    cors_origins: str = "http://localhost:3000"

    # SAT-shaped practice tests: scaled section score range (raw count mapped linearly into it, step 10)
    sat_min_section_score: int = 200
    sat_max_section_score: int = 800

    # Timed quizzes: seconds accepted past started_at + time_limit_minutes before a submit is overdue
    time_limit_grace_seconds: int = 30

    # Seed built-in roles (admin, teacher, student) on startup when missing
    seed_default_roles: bool = True

    debug: bool = False

    @field_validator("jwt_algorithm", mode="before")
    @classmethod
    def _upper_algorithm(cls, v: str) -> str:
        return (v or "HS256").strip().upper()

    @property
    def is_production(self) -> bool:
        return (self.env or "").strip().lower() == "production"


settings = Settings()
