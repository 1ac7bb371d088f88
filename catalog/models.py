"""
catalog/models.py -- Domain dataclasses for the Stockroom product catalog.

These are pure data containers with zero logic. Uniqueness rules live in
catalog/service.py; persistence lives in catalog/store.py.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class Product:
    """A catalog item.

    name is unique ignoring case: "Widget" and "widget" cannot coexist.
    price is a Decimal with two places so money never goes through float.

    id is None before the record is written to the database.
    """

    name: str
    price: Decimal
    description: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: int = 0
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
