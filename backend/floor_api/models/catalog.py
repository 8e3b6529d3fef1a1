"""
Catalog Models: Category, Product.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK


class Category(AuditMixin, Base):
    """Product category (Entradas, Fondos, Bebidas...)."""

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    products: Mapped[list["Product"]] = relationship(back_populates="category")


class Product(AuditMixin, Base):
    """
    Sellable product.

    `price_cents` is the current catalog price; order lines copy it at
    creation and are never re-priced.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("category.id"), nullable=True, index=True
    )
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="ck_product_price_non_negative"),
        Index("ix_product_category_active", "category_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, price_cents={self.price_cents})>"
