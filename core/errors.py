"""
core/errors.py -- Typed failures raised by stores and services.

Services raise these; they never return sentinel values for failure. The API
layer (api/main.py) owns the mapping to HTTP status codes, so nothing in
auth/ or catalog/ knows about HTTP.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

from __future__ import annotations


class StockroomError(Exception):
    """Base class for all domain failures."""


class ConflictError(StockroomError):
    """A write would duplicate a value in a field with a uniqueness invariant."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} '{value}' already exists")


class NotFoundError(StockroomError):
    """The referenced record does not exist.

    key is whatever the caller looked up by: an id for get/update/delete,
    a username for lookup by username.
    """

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class AuthenticationFailed(StockroomError):
    """Credential verification failed.

    Deliberately opaque: the same message for an unknown username and a wrong
    password, so the response cannot be used to enumerate accounts.
    """

    MESSAGE = "Invalid username or password."

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class TokenInvalid(StockroomError):
    """A bearer token failed verification.

    reason is one of MALFORMED, SIGNATURE_MISMATCH, EXPIRED.
    """

    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"
    EXPIRED = "expired"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Token invalid: {reason}")


class StoreConflict(StockroomError):
    """Raised by a store when a unique index rejects an insert or update.

    Carries only the field name; the service that issued the write knows the
    value and re-raises as ConflictError.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"unique constraint violated on {field}")
