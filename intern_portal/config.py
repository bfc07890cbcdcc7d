import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present; real environment variables win.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read once at startup and never mutated. Provide secrets via
    environment variables or a .env file.
    """

    # -----------------
    # Core
    # -----------------
    # Set INTERN_DATABASE_URL (or DATABASE_URL) to a postgres:// URL to use Postgres.
    # Fallback: INTERN_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("INTERN_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("INTERN_DB_PATH", "./intern_portal.sqlite")
    )

    # production | development | test. NODE_ENV is accepted for older deployments.
    APP_ENV: str = (os.environ.get("APP_ENV") or os.environ.get("NODE_ENV") or "development").strip().lower()

    # -----------------
    # Server
    # -----------------
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT") or os.environ.get("PORT") or "5000")

    # Number of supervised workers outside production. 0 = one per CPU core.
    API_WORKERS: int = int(os.environ.get("API_WORKERS", "0"))
    SUPERVISOR_POLL_SECONDS: float = float(os.environ.get("SUPERVISOR_POLL_SECONDS", "1.0"))

    # Per-request access log line ("Request URL: ...").
    LOG_REQUESTS: bool = _env_bool("LOG_REQUESTS", True) is True

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set JWT_SECRET to a strong random value.
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "60"))
    AUTH_MIN_PASSWORD_LENGTH: int = int(os.environ.get("AUTH_MIN_PASSWORD_LENGTH", "8"))

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


def load_config() -> Config:
    return Config()
