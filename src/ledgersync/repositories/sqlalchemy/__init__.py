"""SQLAlchemy repository implementations."""

from ledgersync.repositories.sqlalchemy.database import (
    get_engine,
    get_session_factory,
    get_session,
    init_db,
    init_db_with_path,
    reset_database,
    Base,
)
from ledgersync.repositories.sqlalchemy.preference_repo import SqlAlchemyPreferenceRepository

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_session",
    "init_db",
    "init_db_with_path",
    "reset_database",
    "Base",
    "SqlAlchemyPreferenceRepository",
]
