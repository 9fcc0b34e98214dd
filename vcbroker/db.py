"""
Database configuration with lazy initialization.

The engine is created on first access rather than at import so the app
can start (and answer /healthz) before the database is reachable, and so
tests can point DATABASE_URL somewhere else before anything connects.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import get_settings
from .core.env import is_production_env

logger = logging.getLogger(__name__)

# Global engine instance (lazily initialized)
_engine = None
_SessionLocal = None

Base = declarative_base()


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        database_url = get_settings().database_url

        if is_production_env() and database_url.startswith("sqlite"):
            error_msg = "CRITICAL: SQLite database is not supported in production"
            logger.error(f"[DB] {error_msg}")
            raise ValueError(error_msg)

        # Log only the head of the URL, never credentials
        db_url_safe = database_url[:30] + "..." if len(database_url) > 30 else database_url
        logger.info(f"[DB] Creating database engine for: {db_url_safe}")

        if database_url.startswith("sqlite"):
            if ":memory:" in database_url:
                # One shared connection, otherwise every checkout sees an empty database
                _engine = create_engine(
                    database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                _engine = create_engine(
                    database_url,
                    poolclass=QueuePool,
                    pool_size=5,
                    max_overflow=0,
                    connect_args={"check_same_thread": False},
                )
        else:
            _engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,
            )
    return _engine


def get_session_local():
    """Get or create the SessionLocal class."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def dispose_engine():
    """Release pooled connections (called on shutdown)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db():
    """
    Dependency that provides a database session.
    Used by FastAPI's dependency injection.
    """
    session_class = get_session_local()
    db = session_class()
    try:
        yield db
    finally:
        db.close()
