"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Identity:
    """A user account.

    hashed_password is the bcrypt verifier, never the plaintext. It stays on
    the domain object so the authentication workflow can check it, but no API
    response model has a field for it.

    email is None when the user did not give one. Empty strings are
    normalized to None before they reach the store so the unique index on
    email (which ignores NULLs) does not treat "" as a taken address.

    id is None before the record is written to the database.
    """

    username: str
    hashed_password: str
    email: str | None = None
    id: int | None = None
    created_at: str | None = None  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token.

    Only produced by TokenIssuer.verify(), so holding one means the signature
    and expiry have already been checked.
    """

    user_id: int
    username: str
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds
