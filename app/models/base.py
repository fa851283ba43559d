"""
Declarative base and shared column mixins
"""
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import declarative_base

from app.utils.time import utcnow

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class TimestampMixin:
    """Adds created_at / updated_at columns"""
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
