"""
Catalog: current product prices and display metadata.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from floor_api.models import Product
from shared.utils.exceptions import NotFoundError


class Catalog:
    """DB-backed product lookup used when capturing line prices."""

    def __init__(self, db: Session):
        self._db = db

    def get_products(self, product_ids: Iterable[int]) -> dict[int, Product]:
        """
        Batch-load active products by id.

        Raises NotFoundError for the first id that is unknown or inactive,
        before the caller has written anything.
        """
        wanted = list(dict.fromkeys(product_ids))
        if not wanted:
            return {}

        products = self._db.execute(
            select(Product)
            .options(joinedload(Product.category))
            .where(
                Product.id.in_(wanted),
                Product.is_active.is_(True),
            )
        ).scalars().all()
        lookup = {product.id: product for product in products}

        for product_id in wanted:
            if product_id not in lookup:
                raise NotFoundError("Producto", product_id)
        return lookup

    def get_product(self, product_id: int) -> Product:
        return self.get_products([product_id])[product_id]
