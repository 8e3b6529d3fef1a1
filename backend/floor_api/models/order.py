"""
Order Models: OrderSession, OrderLine, DispatchEvent.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import SessionStatus
from .base import Base, BigIntPK, utcnow

if TYPE_CHECKING:
    from .floor import FloorTable
    from .catalog import Product
    from .staff import Staff

OPEN_SESSION_INDEX = "uq_order_session_open_table"


class OrderSession(Base):
    """
    The open tab against a table ("venta").

    Invariant: total_cents == sum(quantity * unit_price_cents) over lines.
    At most one OPEN session per table, enforced by a partial unique index.
    """

    __tablename__ = "order_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("floor_table.id"), nullable=False, index=True
    )
    party_size: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    staff_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("staff.id"), nullable=True, index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)
    cash_register_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, default=SessionStatus.OPEN, nullable=False, index=True
    )
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    observations: Mapped[str] = mapped_column(Text, default="", nullable=False)

    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    closed_by_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_by_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))

    table: Mapped["FloorTable"] = relationship(back_populates="sessions")
    staff: Mapped[Optional["Staff"]] = relationship(foreign_keys=[staff_id])
    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="session",
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )
    dispatches: Mapped[list["DispatchEvent"]] = relationship(back_populates="session")

    __table_args__ = (
        # Storage-level guard: a second concurrent OPEN insert for the same
        # table fails with IntegrityError instead of creating a duplicate
        Index(
            OPEN_SESSION_INDEX,
            "table_id",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
        CheckConstraint("party_size > 0", name="ck_order_session_party_size_positive"),
        Index("ix_order_session_status_opened", "status", "opened_at"),
    )

    def __repr__(self) -> str:
        return f"<OrderSession(id={self.id}, table_id={self.table_id}, status={self.status})>"


class OrderLine(Base):
    """
    One product entry within a session.

    dispatched_quantity: 0 = not yet sent to preparation,
    == quantity = fully sent. Only lines with dispatched_quantity == 0
    can absorb a merge.
    """

    __tablename__ = "order_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("order_session.id"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    observations: Mapped[str] = mapped_column(Text, default="", nullable=False)
    dispatched_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    dispatched_by_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))
    created_by_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    session: Mapped["OrderSession"] = relationship(back_populates="lines")
    product: Mapped["Product"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_line_quantity_positive"),
        CheckConstraint("unit_price_cents >= 0", name="ck_order_line_price_non_negative"),
        CheckConstraint(
            "dispatched_quantity >= 0 AND dispatched_quantity <= quantity",
            name="ck_order_line_dispatched_range",
        ),
        Index("ix_order_line_session_product", "session_id", "product_id"),
    )

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    @property
    def pending_quantity(self) -> int:
        return self.quantity - self.dispatched_quantity

    def __repr__(self) -> str:
        return (
            f"<OrderLine(id={self.id}, session_id={self.session_id}, "
            f"product_id={self.product_id}, qty={self.quantity}, sent={self.dispatched_quantity})>"
        )


class DispatchEvent(Base):
    """A send-to-kitchen action covering one or more lines of a session."""

    __tablename__ = "dispatch_event"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("order_session.id"), nullable=False, index=True
    )
    cash_register_id: Mapped[Optional[int]] = mapped_column(BigIntPK)
    dispatched_by_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("staff.id"))
    line_count: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    session: Mapped["OrderSession"] = relationship(back_populates="dispatches")
