"""
SQLAlchemy database models for CTN
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, JSON, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class KeyValueModel(Base):
    """One persisted key of the key-value port"""
    __tablename__ = 'kv_entries'

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_kv_updated', 'updated_at'),
    )
