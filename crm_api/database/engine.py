from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

from ..config import get_database_url


def build_engine(url: str, **kwargs) -> Engine:
    """
    SQLAlchemy engine for `url`. SQLite files get their parent directory
    created and are opened with check_same_thread off, as FastAPI runs sync
    handlers on a worker pool.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, future=True, pool_pre_ping=True, **kwargs)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(get_database_url())
