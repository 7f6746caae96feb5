"""Database connection and session management for the preference store."""

from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from ledgersync.config.settings import get_settings

Base = declarative_base()

# Module-level database state (can be reconfigured at runtime)
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _create_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args, echo=False)


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = _create_engine(get_settings().get_database_url())
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
        )
    return _SessionLocal


def get_session() -> Session:
    """Get a new database session."""
    return get_session_factory()()


def init_db() -> None:
    """Create preference tables on the configured database."""
    from ledgersync.repositories.sqlalchemy import orm_models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def init_db_with_path(db_path: Path) -> None:
    """Point the store at a specific SQLite file and create tables."""
    global _engine, _SessionLocal

    reset_database()
    _engine = _create_engine(f"sqlite:///{db_path}")
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    from ledgersync.repositories.sqlalchemy import orm_models  # noqa: F401
    Base.metadata.create_all(bind=_engine)


def reset_database() -> None:
    """Dispose the engine so the next access reconfigures from settings."""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()

    _engine = None
    _SessionLocal = None
