"""
Database connection and session management.
"""

import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from formd_scout.core.config import get_settings
from formd_scout.core.models import Base

# Import Form D models so they're registered with SQLAlchemy
from formd_scout.sources.sec_form_d import models as form_d_models  # noqa: F401

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton engine & session factory, created once and reused everywhere
# ---------------------------------------------------------------------------
_engine = None
_SessionLocal = None


def get_engine():
    """
    Get the shared database engine (singleton).

    PostgreSQL gets a pooled engine; SQLite (local runs, tests) uses the
    dialect's default pool.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        if settings.database_url.startswith("sqlite"):
            _engine = create_engine(settings.database_url, echo=False)
        else:
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Verify connections before using
                echo=False,
            )
    return _engine


def create_tables(engine=None):
    """
    Create all tables if they don't exist.

    Idempotent - safe to call multiple times.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Creating tables if they don't exist...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables ready")


def get_session_factory():
    """Get the shared session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def reset_engine() -> None:
    """Dispose the shared engine and forget the session factory (tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
