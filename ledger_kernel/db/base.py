"""
Declarative bases for the ledger tables.

Every table gets a uuid4 primary key stored as text so the same schema
runs on SQLite (tests, single-user desktop file) and PostgreSQL.
Money columns are fixed-point; floats never touch a balance.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

MONEY_PRECISION = 38
MONEY_SCALE = 9
ACTOR_ID_LENGTH = 100


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, 36-character text in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


def _timestamp_column(**kwargs) -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, **kwargs)


class Base(DeclarativeBase):
    """Root of every ORM model: uuid4 ``id`` plus the shared column type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(MONEY_PRECISION, MONEY_SCALE),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds row timestamps and ``created_by``.

    ``created_by`` is whatever user identifier the calling application
    passes in. It stays NULL for system postings such as bootstrap seeding
    and the unposted-document sweep.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = _timestamp_column()
    updated_at: Mapped[datetime] = _timestamp_column(onupdate=func.now())
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
