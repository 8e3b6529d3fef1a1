"""
Staff Model: floor personnel resolved by code.
"""

from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import StaffRole
from .base import AuditMixin, Base, BigIntPK


class Staff(AuditMixin, Base):
    """
    Waiter, cashier or manager.

    `code` is what floor terminals send (e.g. "M01"); it is resolved to an
    active row before any table operation is authorized.
    """

    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, default=StaffRole.WAITER, nullable=False)

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, code={self.code}, role={self.role})>"
