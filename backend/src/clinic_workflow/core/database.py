"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory used by the
reference persistence collaborator, and stamps created_at/updated_at in the
clinic time zone.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from clinic_workflow.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

DB_POOL_RECYCLE_SECONDS = 300

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,  # Verify connections before use
    pool_recycle=DB_POOL_RECYCLE_SECONDS,
    echo=False,
    future=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Records are mapped out after commit
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@event.listens_for(Base, "before_insert", propagate=True)
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert unless the caller already did."""
    from clinic_workflow.utils.datetime_utils import clinic_now
    now = clinic_now()
    for column_name in ("created_at", "updated_at"):
        if column_name in mapper.columns and getattr(target, column_name, None) is None:
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)
def receive_before_update(mapper, connection, target):  # type: ignore
    """Keep updated_at when the caller set it explicitly, otherwise stamp it."""
    from sqlalchemy import inspect as sa_inspect
    from clinic_workflow.utils.datetime_utils import clinic_now
    if "updated_at" not in mapper.columns:
        return
    history = sa_inspect(target).attrs.updated_at.history
    if not history.has_changes():
        setattr(target, "updated_at", clinic_now())


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success and rolls back on any error.

    Example:
        ```python
        with get_db_context() as db:
            store = SqlAlchemyClinicStore(db)
            patient = store.load_patient(1)
        ```
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Database transaction failed: {e}")
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables() -> None:
    """
    Create all database tables defined in SQLAlchemy models.

    Safe to call multiple times - will not recreate existing tables.
    """
    # Import models so they are registered on Base.metadata
    import clinic_workflow.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to create database tables: {e}")
        raise


def drop_tables() -> None:
    """
    Drop all database tables defined in SQLAlchemy models.

    WARNING: This will permanently delete all data in the tables!
    """
    import clinic_workflow.models  # noqa: F401

    try:
        Base.metadata.drop_all(bind=engine)
        logger.info("Database tables dropped successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to drop database tables: {e}")
        raise
