"""SQLAlchemy ORM model definitions."""

from sqlalchemy import Column, DateTime, String, Text

from ledgersync.core.timezone import now_utc
from ledgersync.repositories.sqlalchemy.database import Base


class PreferenceORM(Base):
    """SQLAlchemy model for one stored preference."""

    __tablename__ = "preferences"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc)
