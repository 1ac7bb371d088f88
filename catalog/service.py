"""
catalog/service.py -- Uniqueness-guarded product workflow.

CatalogService owns the rule that no two products share a name ignoring
case. Create and update run the fast-path lookup, then write inside
conflicts_translated() so a lost race at the unique index still becomes
ConflictError("name", value).

Updates assemble the complete new Product before the single store.update()
call; a failed conflict check leaves the stored record untouched.
"""

import logging
from decimal import Decimal
from typing import Optional

from catalog.models import Product
from catalog.store import CatalogStore
from core.errors import NotFoundError
from core.uniqueness import conflicts_translated, ensure_available

logger = logging.getLogger("stockroom.catalog")

_UPDATABLE_FIELDS = frozenset({"name", "price", "description", "category", "stock_quantity"})


class CatalogService:
    def __init__(self, store: CatalogStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_product(self, product_id: int) -> Product:
        product = self.store.get_by_id(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    def list_products(self) -> list[Product]:
        return self.store.list_all()

    def search_by_name(self, fragment: str) -> list[Product]:
        return self.store.search_by_name(fragment)

    def filter_by_category(self, category: str) -> list[Product]:
        return self.store.filter_by_category(category)

    def filter_by_price_range(
        self,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
    ) -> list[Product]:
        return self.store.filter_by_price_range(min_price, max_price)

    def list_categories(self) -> list[str]:
        return self.store.list_categories()

    def list_low_stock(self, threshold: int) -> list[Product]:
        return self.store.list_low_stock(threshold)

    def list_available(self, min_price: Decimal = Decimal("0")) -> list[Product]:
        return self.store.list_available(min_price)

    # ------------------------------------------------------------------
    # Guarded mutations
    # ------------------------------------------------------------------

    def create_product(self, product: Product) -> Product:
        """Insert a new product. Raises ConflictError("name", ...) on a duplicate name."""
        ensure_available("name", product.name, self.store.get_by_name(product.name))
        with conflicts_translated({"name": product.name}):
            created = self.store.insert(product)
        logger.info("Created product id=%s name=%s", created.id, created.name)
        return created

    def update_product(self, product_id: int, **changes) -> Product:
        """Apply an update to a product.

        Accepted keys: name, price, description, category, stock_quantity.
        Absent keys keep their current value. The name conflict check only
        runs when the name changes other than by case, since a case-only
        rename cannot collide with anything but the record itself.

        Raises NotFoundError, ConflictError, or ValueError for unknown keys.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {sorted(unknown)!r}")

        current = self.get_product(product_id)

        name = changes.get("name") or current.name
        if name.lower() != current.name.lower():
            ensure_available("name", name, self.store.get_by_name(name), current_id=current.id)

        updated = Product(
            id=current.id,
            name=name,
            price=changes["price"] if changes.get("price") is not None else current.price,
            description=changes["description"] if "description" in changes else current.description,
            category=changes["category"] if "category" in changes else current.category,
            stock_quantity=(
                changes["stock_quantity"] if changes.get("stock_quantity") is not None else current.stock_quantity
            ),
            created_at=current.created_at,
        )
        with conflicts_translated({"name": name}):
            self.store.update(updated)
        logger.info("Updated product id=%s fields=%s", product_id, ",".join(sorted(changes)))
        return updated

    def delete_product(self, product_id: int) -> None:
        """Delete a product unconditionally. Raises NotFoundError if absent."""
        if not self.store.delete(product_id):
            raise NotFoundError("product", product_id)
        logger.info("Deleted product id=%s", product_id)
