"""
core/uniqueness.py -- Shared conflict checks for uniqueness-guarded writes.

Two layers guard every unique field:

  1. ensure_available() -- the application-level fast path. A lookup before
     the write gives a clean ConflictError without paying for bcrypt or a
     failed INSERT. It cannot close the race between two concurrent writers:
     both can pass the check before either commits.

  2. conflicts_translated() -- wraps the store write. The unique index is the
     authoritative guard; when it rejects the write the store raises
     StoreConflict, and this context manager turns it into the same
     ConflictError the fast path would have produced.

Used identically by auth/service.py and catalog/service.py.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Optional

from core.errors import ConflictError, StoreConflict


def ensure_available(field: str, value: Any, existing: Any, current_id: Optional[int] = None) -> None:
    """Raise ConflictError if another record already holds value.

    existing is the result of the store lookup for value (None if free).
    current_id excludes the record being updated, so a record never
    conflicts with itself.
    """
    if existing is None:
        return
    if current_id is not None and existing.id == current_id:
        return
    raise ConflictError(field, value)


@contextmanager
def conflicts_translated(values: Mapping[str, Any]) -> Iterator[None]:
    """Convert StoreConflict raised inside the block into ConflictError.

    values maps each unique field name to the value the caller tried to write,
    so the resulting error reports what actually collided.
    """
    try:
        yield
    except StoreConflict as exc:
        raise ConflictError(exc.field, values.get(exc.field)) from exc
