"""
Floor Models: Zone, FloorTable, OccupancyRecord, TableStateHistory.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableState
from .base import AuditMixin, Base, BigIntPK, utcnow

if TYPE_CHECKING:
    from .staff import Staff
    from .order import OrderSession


class Zone(AuditMixin, Base):
    """A floor area (salón, terraza, barra) grouping tables."""

    __tablename__ = "zone"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    tables: Mapped[list["FloorTable"]] = relationship(back_populates="zone")


class FloorTable(AuditMixin, Base):
    """
    Physical table on the floor.

    `state` is only mutated through TableRegistryService.transition.
    `occupied_since` is the occupancy clock: set on entering OCUPADA,
    cleared on leaving it; elapsed time is always computed on read.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "floor_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(Text)
    zone_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("zone.id"), nullable=True, index=True
    )
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    state: Mapped[str] = mapped_column(Text, default=TableState.FREE, nullable=False, index=True)
    observations: Mapped[Optional[str]] = mapped_column(Text)
    is_vip: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    assigned_staff_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("staff.id"), nullable=True, index=True
    )
    assignment_kind: Mapped[Optional[str]] = mapped_column(Text)
    party_size: Mapped[Optional[int]] = mapped_column(Integer)
    occupied_since: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    reservation_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), index=True
    )

    # Bumped on every committed mutation; the floor cache ignores older versions
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    zone: Mapped[Optional["Zone"]] = relationship(back_populates="tables")
    assigned_staff: Mapped[Optional["Staff"]] = relationship(foreign_keys=[assigned_staff_id])
    sessions: Mapped[list["OrderSession"]] = relationship(back_populates="table")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_floor_table_capacity_positive"),
        Index("ix_floor_table_zone_state", "zone_id", "state"),
    )

    def __repr__(self) -> str:
        return f"<FloorTable(id={self.id}, number={self.number}, state={self.state})>"


class OccupancyRecord(Base):
    """Append-only occupancy history, written when a table leaves OCUPADA."""

    __tablename__ = "occupancy_record"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("floor_table.id"), nullable=False, index=True
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    party_size: Mapped[Optional[int]] = mapped_column(Integer)
    staff_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))

    def __repr__(self) -> str:
        return f"<OccupancyRecord(table_id={self.table_id}, duration={self.duration_seconds}s)>"


class TableStateHistory(Base):
    """One row per table state transition."""

    __tablename__ = "table_state_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("floor_table.id"), nullable=False, index=True
    )
    previous_state: Mapped[str] = mapped_column(Text, nullable=False)
    new_state: Mapped[str] = mapped_column(Text, nullable=False)
    staff_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    party_size: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_table_state_history_table_created", "table_id", "created_at"),
    )
