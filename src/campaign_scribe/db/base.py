"""Database engine and session configuration."""

import os
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Default: SQLite for local dev; use DATABASE_URL for Postgres.
# Set FORCE_SQLITE=1 to use SQLite even when DATABASE_URL is set.
_default_sqlite = "sqlite:///./campaign_scribe.db"
_raw = os.environ.get("DATABASE_URL", _default_sqlite)
if os.environ.get("FORCE_SQLITE", "").lower() in ("1", "true") or not (_raw and _raw.strip()):
    DATABASE_URL = _default_sqlite
else:
    DATABASE_URL = _raw.strip()


@lru_cache(maxsize=1)
def get_engine():
    """SQLAlchemy engine for DATABASE_URL, created once per process."""
    connect_args = {}
    if DATABASE_URL.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        DATABASE_URL,
        connect_args=connect_args,
        echo=os.environ.get("SQL_ECHO", "").lower() in ("1", "true"),
    )


@lru_cache(maxsize=1)
def get_session_factory():
    """Return the process-wide session factory bound to the engine."""
    engine = get_engine()
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session (for FastAPI)."""
    factory = get_session_factory()
    session = factory()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Create all tables. Call after app startup or in migrations."""
    from campaign_scribe.db.models import Base

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
