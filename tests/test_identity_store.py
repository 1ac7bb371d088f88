"""
tests/test_identity_store.py -- Unit tests for auth/store.py.

Covers the unique indexes directly, without the service-level fast path:
duplicate username and email raise StoreConflict naming the field, NULL
emails never collide, and update() writes the whole record.
"""

from __future__ import annotations

import pytest

from auth.models import Identity
from auth.store import IdentityStore
from core.errors import StoreConflict


def _identity(username: str, email: str | None = None) -> Identity:
    return Identity(username=username, email=email, hashed_password="$2b$04$placeholderplaceholderpl")


class TestInsert:
    def test_insert_fills_id_and_created_at(self, identity_store: IdentityStore) -> None:
        created = identity_store.insert(_identity("alice", "a@x.io"))
        assert created.id is not None
        assert created.created_at
        assert identity_store.get_by_id(created.id) == created

    def test_duplicate_username(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice"))
        with pytest.raises(StoreConflict) as exc_info:
            identity_store.insert(_identity("alice"))
        assert exc_info.value.field == "username"

    def test_duplicate_email(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice", "a@x.io"))
        with pytest.raises(StoreConflict) as exc_info:
            identity_store.insert(_identity("bob", "a@x.io"))
        assert exc_info.value.field == "email"

    def test_null_and_empty_emails_never_collide(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice"))
        identity_store.insert(_identity("bob", ""))
        identity_store.insert(_identity("carol", "   "))
        assert identity_store.count() == 3
        assert all(i.email is None for i in identity_store.list_all())


class TestLookups:
    def test_get_by_username_is_exact(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice"))
        assert identity_store.get_by_username("alice") is not None
        assert identity_store.get_by_username("ALICE") is None

    def test_get_by_email(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice", "a@x.io"))
        assert identity_store.get_by_email("a@x.io").username == "alice"
        assert identity_store.get_by_email("") is None
        assert identity_store.get_by_email(None) is None  # type: ignore[arg-type]

    def test_missing_returns_none(self, identity_store: IdentityStore) -> None:
        assert identity_store.get_by_id(1) is None
        assert identity_store.get_by_username("ghost") is None


class TestUpdateAndDelete:
    def test_update_writes_full_record(self, identity_store: IdentityStore) -> None:
        created = identity_store.insert(_identity("alice", "a@x.io"))
        created.username = "alicia"
        created.email = None
        identity_store.update(created)
        stored = identity_store.get_by_id(created.id)
        assert stored.username == "alicia"
        assert stored.email is None

    def test_update_into_taken_username(self, identity_store: IdentityStore) -> None:
        identity_store.insert(_identity("alice"))
        bob = identity_store.insert(_identity("bob"))
        bob.username = "alice"
        with pytest.raises(StoreConflict) as exc_info:
            identity_store.update(bob)
        assert exc_info.value.field == "username"
        assert identity_store.get_by_id(bob.id).username == "bob"

    def test_delete(self, identity_store: IdentityStore) -> None:
        created = identity_store.insert(_identity("alice"))
        assert identity_store.delete(created.id) is True
        assert identity_store.delete(created.id) is False
        assert identity_store.count() == 0

    def test_ping(self, identity_store: IdentityStore) -> None:
        assert identity_store.ping() is True
