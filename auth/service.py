"""
auth/service.py -- Registration, authentication, and identity mutations.

IdentityService is the only code that writes identities. Route handlers and
the CLI call it; it calls IdentityStore, the bcrypt helpers, and TokenIssuer.

Uniqueness guard (see core/uniqueness.py): every write runs the fast-path
lookup first, then performs the store write inside conflicts_translated() so
a race lost at the unique index still surfaces as ConflictError.

Registration vs. create:
  register() checks only the username before inserting. create_identity()
  checks username and email. The email unique index still rejects a
  duplicate address at registration -- it just arrives as a store conflict
  rather than from the fast path.

Authentication [C1]:
  authenticate() raises one AuthenticationFailed for both "no such user" and
  "wrong password" and runs bcrypt in both cases. Which of the two happened
  is logged at DEBUG for operators and never leaves the process.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging

from auth.models import Identity
from auth.store import IdentityStore, normalize_email
from auth.tokens import TokenIssuer, hash_password, verify_dummy, verify_password
from core.errors import AuthenticationFailed, NotFoundError
from core.uniqueness import conflicts_translated, ensure_available

logger = logging.getLogger("stockroom.auth")

_UPDATABLE_FIELDS = frozenset({"username", "email", "password"})


class IdentityService:
    def __init__(self, store: IdentityStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, username: str, password: str, email: str | None = None) -> Identity:
        """Create a self-registered account.

        Raises ConflictError("username", username) if the username is taken,
        ConflictError("email", email) if the store rejects a duplicate email.
        """
        email = normalize_email(email)
        ensure_available("username", username, self.store.get_by_username(username))
        candidate = Identity(username=username, email=email, hashed_password=hash_password(password))
        with conflicts_translated({"username": username, "email": email}):
            created = self.store.insert(candidate)
        logger.info("Registered identity id=%s username=%s", created.id, created.username)
        return created

    def authenticate(self, username: str, password: str) -> tuple[Identity, str]:
        """Verify credentials and issue a bearer token.

        Returns (identity, token). Raises AuthenticationFailed on any failure.
        """
        identity = self.store.get_by_username(username)
        if identity is None:
            verify_dummy(password)  # equalize timing [C1]
            logger.debug("Authentication failed: unknown_user username=%s", username)
            raise AuthenticationFailed()
        if not verify_password(password, identity.hashed_password):
            logger.debug("Authentication failed: bad_password id=%s", identity.id)
            raise AuthenticationFailed()
        token = self.issuer.issue(identity.id, identity.username)
        logger.info("Issued token for id=%s", identity.id)
        return identity, token

    def login(self, username: str, password: str) -> str:
        """Token-only form of authenticate()."""
        _identity, token = self.authenticate(username, password)
        return token

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_identity(self, identity_id: int) -> Identity:
        identity = self.store.get_by_id(identity_id)
        if identity is None:
            raise NotFoundError("user", identity_id)
        return identity

    def get_identity_by_username(self, username: str) -> Identity:
        identity = self.store.get_by_username(username)
        if identity is None:
            raise NotFoundError("user", username)
        return identity

    def list_identities(self) -> list[Identity]:
        return self.store.list_all()

    def username_exists(self, username: str) -> bool:
        return self.store.get_by_username(username) is not None

    def email_exists(self, email: str) -> bool:
        return self.store.get_by_email(email) is not None

    # ------------------------------------------------------------------
    # Guarded mutations
    # ------------------------------------------------------------------

    def create_identity(self, username: str, password: str, email: str | None = None) -> Identity:
        """Create an account on behalf of another caller.

        Unlike register(), checks both username and email up front.
        """
        email = normalize_email(email)
        ensure_available("username", username, self.store.get_by_username(username))
        if email is not None:
            ensure_available("email", email, self.store.get_by_email(email))
        candidate = Identity(username=username, email=email, hashed_password=hash_password(password))
        with conflicts_translated({"username": username, "email": email}):
            created = self.store.insert(candidate)
        logger.info("Created identity id=%s username=%s", created.id, created.username)
        return created

    def update_identity(self, identity_id: int, **changes) -> Identity:
        """Apply a partial update to an identity.

        Accepted keys: username, email, password. Keys that are absent leave
        the field unchanged. email=None or "" clears the address. A missing or
        empty password keeps the stored verifier byte-for-byte.

        Raises NotFoundError, ConflictError, or ValueError for unknown keys.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)!r}")

        current = self.get_identity(identity_id)

        username = changes.get("username") or current.username
        if username != current.username:
            ensure_available("username", username, self.store.get_by_username(username), current_id=current.id)

        email = normalize_email(changes["email"]) if "email" in changes else current.email
        if email is not None and email != current.email:
            ensure_available("email", email, self.store.get_by_email(email), current_id=current.id)

        password = changes.get("password")
        hashed = hash_password(password) if password else current.hashed_password

        updated = Identity(
            id=current.id,
            username=username,
            email=email,
            hashed_password=hashed,
            created_at=current.created_at,
        )
        with conflicts_translated({"username": username, "email": email}):
            self.store.update(updated)
        logger.info("Updated identity id=%s fields=%s", identity_id, ",".join(sorted(changes)))
        return updated

    def delete_identity(self, identity_id: int) -> None:
        """Delete an identity unconditionally. Raises NotFoundError if absent."""
        if not self.store.delete(identity_id):
            raise NotFoundError("user", identity_id)
        logger.info("Deleted identity id=%s", identity_id)
