"""Database engine and session management."""
from typing import Any, Callable, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fieldclock.config.settings import settings


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None, **kwargs: Any) -> Engine:
    """
    Create an engine for the given URL (defaults to settings).

    SQLite connections are shared with the location monitor thread,
    so same-thread checking is disabled there.
    """
    url = database_url or settings.get_database_url()
    options: Dict[str, Any] = {
        "echo": settings.DATABASE_ECHO if echo is None else echo,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.DB_POOL_SIZE
        options["max_overflow"] = settings.DB_POOL_OVERFLOW

    options.update(kwargs)
    return create_engine(url, **options)


def build_session_factory(bind: Engine) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create database engine and SessionLocal from settings
engine = build_engine()
SessionLocal = build_session_factory(engine)
