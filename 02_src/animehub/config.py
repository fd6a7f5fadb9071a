"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
PUBLIC_DIR = PROJECT_ROOT / "05_public"
DEFAULT_DB_PATH = DATA_DIR / "animehub.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_UPLOADS_DIR = PUBLIC_DIR / "uploads"

UPLOADS_URL_PREFIX = "/uploads"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_uploads_dir(env_value: PathLike | None = None) -> Path:
    """Resolve UPLOADS_DIR to an absolute path."""
    if not env_value:
        return DEFAULT_UPLOADS_DIR

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    database_url: str | None = None
    uploads_dir: str | None = None
    session_secret: str = "defaultSecret"
    session_max_age: int = 60 * 60
    debug: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5500"])
    api_host: str = "localhost"
    api_port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            uploads_dir=os.getenv("UPLOADS_DIR"),
            session_secret=os.getenv("SESSION_SECRET", "defaultSecret"),
            session_max_age=int(os.getenv("SESSION_MAX_AGE", str(60 * 60))),
            debug=_env_flag("DEBUG"),
            cors_origins=_env_list("CORS_ORIGINS", "http://localhost:5500"),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=int(os.getenv("API_PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
