"""Catalogue reader — the inventory core's view of product price and stock.

The catalogue itself is owned elsewhere; this module reads the product rows
the atomic store holds and offers a seeding helper for tools and tests.
"""

import structlog
from protean.exceptions import ValidationError

from shared.storage import get_store
from shared.storage.port import AtomicStore, ProductRecord

logger = structlog.get_logger(__name__)


class Catalogue:
    def __init__(self, store: AtomicStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> AtomicStore:
        return self._store or get_store()

    def get_product(self, product_id) -> ProductRecord | None:
        return self.store.get_product(str(product_id))

    def stock_product(
        self,
        product_id,
        name,
        price,
        available_quantity,
        is_active=True,
        image="",
        low_stock_threshold=10,
    ) -> ProductRecord:
        """Create or replace a product row."""
        if price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})
        if available_quantity < 0:
            raise ValidationError({"available_quantity": ["Stock cannot be negative"]})

        record = ProductRecord(
            product_id=str(product_id),
            name=name,
            price=float(price),
            available_quantity=int(available_quantity),
            is_active=is_active,
            image=image or "",
            low_stock_threshold=low_stock_threshold,
        )
        self.store.add_product(record)
        logger.info(
            "Stocked product",
            product_id=record.product_id,
            available_quantity=record.available_quantity,
            is_active=record.is_active,
        )
        return record
