from fieldclock.db.base import Base
from fieldclock.db.init_db import drop_db, init_db
from fieldclock.db.session import SessionLocal, build_engine, build_session_factory, engine

__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "drop_db",
    "engine",
    "init_db",
]
