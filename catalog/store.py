"""
catalog/store.py -- SQLAlchemy-backed persistence layer for the product catalog.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in catalog/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. CatalogStore is the repository;
_row_to_product is the mapper. Services never touch SQL directly.

Uniqueness: product names are unique ignoring case. That is enforced by a
unique index on lower(name), so the database rejects "widget" when "Widget"
exists even if two requests race past the service-level check. Lookups by
name use the same lower() expression so the fast path and the index agree
on what counts as equal.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CatalogStore()                               # default DATABASE_URL
    store = CatalogStore("postgresql://user:pw@host/db") # PostgreSQL
    created = store.insert(Product(name="Widget", price=Decimal("9.99")))
    store.filter_by_price_range(Decimal("1"), Decimal("10"))
    store.close()
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from catalog.models import Product
from core.config import get_settings
from core.errors import StoreConflict

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("description", Text),
    Column("category", String(100)),
    Column("stock_quantity", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_NAME_INDEX = "uq_products_name_ci"

Index(_NAME_INDEX, func.lower(_products.c.name), unique=True)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _conflict_field(exc: IntegrityError) -> str:
    # SQLite names the index for expression indexes; PostgreSQL names the
    # constraint. Both contain the index name.
    if _NAME_INDEX in str(exc.orig):
        return "name"
    raise exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False because FastAPI runs
            # sync handlers on a thread pool and pooled connections move
            # between threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Single-record lookups
    # ------------------------------------------------------------------

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Fetch a single product by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def get_by_name(self, name: str) -> Optional[Product]:
        """Look up a product by name, ignoring case. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _products.select().where(func.lower(_products.c.name) == func.lower(name))
            ).fetchone()
        return _row_to_product(row) if row is not None else None

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_all(self) -> list[Product]:
        """Return all products ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_products.select().order_by(_products.c.id)).fetchall()
        return [_row_to_product(r) for r in rows]

    def search_by_name(self, fragment: str) -> list[Product]:
        """Return products whose name contains fragment, ignoring case.

        autoescape makes % and _ in the fragment match literally instead of
        acting as LIKE wildcards.
        """
        stmt = (
            _products.select()
            .where(_products.c.name.icontains(fragment, autoescape=True))
            .order_by(_products.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_product(r) for r in rows]

    def filter_by_category(self, category: str) -> list[Product]:
        """Return products in category (exact match, ignoring case)."""
        stmt = (
            _products.select()
            .where(func.lower(_products.c.category) == func.lower(category))
            .order_by(_products.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_product(r) for r in rows]

    def filter_by_price_range(
        self,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
    ) -> list[Product]:
        """Return products priced within [min_price, max_price], cheapest first.

        Either bound may be omitted. min_price > max_price is not an error;
        it simply matches nothing.
        """
        stmt = _products.select()
        if min_price is not None:
            stmt = stmt.where(_products.c.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(_products.c.price <= max_price)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_products.c.price, _products.c.id)).fetchall()
        return [_row_to_product(r) for r in rows]

    def list_categories(self) -> list[str]:
        """Return the distinct non-null categories in alphabetical order."""
        stmt = (
            select(_products.c.category)
            .where(_products.c.category.isnot(None))
            .distinct()
            .order_by(_products.c.category)
        )
        with self.engine.connect() as conn:
            return [row.category for row in conn.execute(stmt)]

    def list_low_stock(self, threshold: int) -> list[Product]:
        """Return products with stock_quantity strictly below threshold, lowest first."""
        stmt = (
            _products.select()
            .where(_products.c.stock_quantity < threshold)
            .order_by(_products.c.stock_quantity, _products.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_product(r) for r in rows]

    def list_available(self, min_price: Decimal) -> list[Product]:
        """Return in-stock products priced at or above min_price, cheapest first."""
        stmt = (
            _products.select()
            .where((_products.c.price >= min_price) & (_products.c.stock_quantity > 0))
            .order_by(_products.c.price.asc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_product(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, product: Product) -> Product:
        """Insert a new product and return it with id and created_at filled in.

        Raises StoreConflict("name") if the case-insensitive name index
        rejects the row.
        """
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _products.insert().values(
                        name=product.name,
                        price=product.price,
                        description=product.description,
                        category=product.category,
                        stock_quantity=product.stock_quantity,
                        created_at=created_at,
                    )
                )
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise StoreConflict(_conflict_field(exc)) from exc
        return Product(
            id=new_id,
            name=product.name,
            price=product.price,
            description=product.description,
            category=product.category,
            stock_quantity=product.stock_quantity,
            created_at=created_at,
        )

    def update(self, product: Product) -> Product:
        """Write every mutable column of an existing product in one UPDATE.

        Raises StoreConflict("name") on a unique index violation.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _products.update()
                    .where(_products.c.id == product.id)
                    .values(
                        name=product.name,
                        price=product.price,
                        description=product.description,
                        category=product.category,
                        stock_quantity=product.stock_quantity,
                    )
                )
        except IntegrityError as exc:
            raise StoreConflict(_conflict_field(exc)) from exc
        return product

    def delete(self, product_id: int) -> bool:
        """Permanently delete a product. Returns True if deleted, False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=Decimal(row.price).quantize(Decimal("0.01")),
        description=row.description,
        category=row.category,
        stock_quantity=row.stock_quantity,
        created_at=row.created_at,
    )
