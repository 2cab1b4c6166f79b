import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Return an environment setting with an optional default."""
    return os.getenv(name, default)


def get_int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_database_url() -> str:
    """
    Return the database URL for SQLAlchemy.
    Defaults to a local SQLite file for development if not provided.
    """
    return os.getenv("DATABASE_URL") or "sqlite:///./data/crm.db"


def get_cors_origins() -> list[str]:
    origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "")
    return [o.strip() for o in origins_raw.split(",") if o.strip()]


GLOBAL_MAX_PAGE_SIZE = get_int_setting("GLOBAL_MAX_PAGE_SIZE", 50)
DEFAULT_PAGE_SIZE = 20
MAX_PREVIEW_SAMPLE = 10
PREVIEW_SAMPLE_SIZE = max(1, min(get_int_setting("PREVIEW_SAMPLE_SIZE", MAX_PREVIEW_SAMPLE), MAX_PREVIEW_SAMPLE))
LOG_LEVEL = (get_setting("LOG_LEVEL", "INFO") or "INFO").upper()
