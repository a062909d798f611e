"""
Defines base models for SQLAlchemy ORM with common attributes.

Two abstract bases are provided. ``BaseModel`` is keyed by a UUID and is used
for parties (customers and merchants) whose ids come from the identity
provider. ``SequencedModel`` is keyed by a monotonically increasing integer
and is used for catalog rows and the chat log, where ids double as a
tie-breaker for ordering.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, TypeDecorator
from sqlalchemy.dialects.postgresql import UUID as PostgreSQLUUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(UTC)


class UUID(TypeDecorator):
    """
    Platform-independent UUID type.
    Uses PostgreSQL's UUID type when available,
    otherwise uses CHAR(36), storing as string.
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PostgreSQLUUID())
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == 'postgresql':
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            return uuid.UUID(value)
        return value


# SQLite only autoincrements INTEGER PRIMARY KEY columns
SequenceId = BigInteger().with_variant(Integer, "sqlite")


class BaseModel(Base):
    """
    Base model class for UUID-keyed entities.

    :ivar id: Unique identifier for the record.
    :type id: UUID
    :ivar created_at: Timestamp representing when the record was created.
    :type created_at: datetime
    :ivar updated_at: Timestamp representing when the record was last updated.
    :type updated_at: datetime
    """
    __abstract__ = True

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class SequencedModel(Base):
    """
    Base model class for entities keyed by a monotonic integer id.

    :ivar id: Store-assigned, strictly increasing identifier.
    :type id: int
    """
    __abstract__ = True

    id = Column(SequenceId, primary_key=True, autoincrement=True)
