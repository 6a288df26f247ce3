"""
Database engine and session management.

Provides:
- create_db_engine() shared by the app and Alembic migrations
- SessionLocal factory for sync components and request handlers
- get_db() dependency for FastAPI request-scoped sessions
- get_db_context() for scripts and background sync jobs
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from plansync.config import get_settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """Turn on ON DELETE CASCADE handling (plan deletion removes its link)."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False, for_migrations: bool = False) -> Engine:
    """
    Build an engine for `database_url`.

    SQLite engines share one connection across the FastAPI threadpool and
    enforce foreign keys. Migration engines never pool connections.
    """
    if database_url.lower().startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool if for_migrations else StaticPool,
            echo=echo,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    if for_migrations:
        return create_engine(database_url, poolclass=NullPool, echo=echo)

    return create_engine(
        database_url,
        pool_size=5,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=echo,
    )


settings = get_settings()

if settings.is_production:
    settings.validate_production_config()

engine = create_db_engine(settings.database_url, echo=settings.log_level == "DEBUG")

# Sync components keep using rows after committing them
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for request-scoped database sessions.

    Commits when the request handler returns, rolls back if it raised.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside FastAPI.

    Usage for scripts or scheduled availability refreshes:
        with get_db_context() as db:
            ConnectionService(db, CredentialVault.from_settings()).sync_availability(user_id)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_connection() -> bool:
    """Run a trivial query to see whether the database answers."""
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
