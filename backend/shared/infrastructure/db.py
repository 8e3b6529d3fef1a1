"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns with a bounded connection pool.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from shared.config.settings import settings, DATABASE_URL


def _engine_options(url: str) -> dict[str, Any]:
    """
    Pool options for the configured backend.

    PostgreSQL gets a bounded QueuePool so concurrent handlers wait for a
    connection instead of overwhelming the store. SQLite (local runs) keeps
    its default pool, which rejects the sizing arguments.
    """
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,  # Wait max N seconds for a pooled connection
        "pool_recycle": 1800,
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/floor")
        def get_floor(db: Session = Depends(get_db)):
            ...

    The session is automatically closed after the request completes;
    closing rolls back anything left uncommitted.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI.

    Usage:
        with get_db_context() as db:
            db.execute(select(FloorTable)).scalars().all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
