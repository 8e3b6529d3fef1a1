"""
Base class and shared mixins for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT on PostgreSQL; plain INTEGER on SQLite so that the column becomes
# the rowid alias and autoincrements there too.
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Timezone-aware current time used for every domain timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a stored timestamp to aware UTC.

    SQLite hands back naive datetimes even for DateTime(timezone=True).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class AuditMixin:
    """
    Soft-delete flag and audit timestamps.

    Floor entities (tables, zones, staff, products) are never deleted;
    they are deactivated and kept for history.
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def deactivate(self) -> None:
        self.is_active = False
        self.deleted_at = utcnow()

    def reactivate(self) -> None:
        self.is_active = True
        self.deleted_at = None

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        active = "active" if self.is_active else "inactive"
        return f"<{class_name}(id={id_val}, {active})>"
