"""
API request and response models for Stockroom REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Field-presence and format checks live here (the validation layer). The
services behind the routes assume these checks already passed.

Security: no response model has a password or hashed_password field, so a
verifier cannot be serialized by accident.
"""

import re
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Identity
from auth.tokens import MAX_PASSWORD_BYTES
from catalog.models import Product

_PASSWORD = Field(min_length=1)
_USERNAME = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.\-]+$")
_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    # Passwords are taken verbatim. Surrounding spaces are part of the secret.
    if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
    return value


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


class ExistsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    exists: bool


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: str = _USERNAME
    password: str = _PASSWORD
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No format rules beyond presence: a malformed username must fail the same
    way as an unknown one (401), not with a 422 that reveals the rules.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    username: str = _USERNAME
    password: str = _PASSWORD
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}.

    Only fields present in the request body are applied (exclude_unset).
    Sending "email": null or "" clears the address. Omitting password, or
    sending an empty one, keeps the current password.
    """

    username: Optional[str] = Field(default=None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.\-]+$")
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return _validate_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            created_at=identity.created_at or "",
        )


def _validate_email(value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is not None and not re.match(_EMAIL_PATTERN, value):
        raise ValueError("email must look like name@example.com")
    return value


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/v1/products and PUT /api/v1/products/{id}.

    PUT replaces every field, matching the create shape.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[str] = Field(default=None, max_length=100)
    stock_quantity: int = Field(default=0, ge=0)

    @field_validator("category", "description")
    @classmethod
    def blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

    def to_product(self) -> Product:
        return Product(
            name=self.name,
            price=self.price,
            description=self.description,
            category=self.category,
            stock_quantity=self.stock_quantity,
        )


class ProductResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    price: float
    description: Optional[str]
    category: Optional[str]
    stock_quantity: int
    created_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        """Factory Method -- mapping colocated with the output model."""
        return cls(
            id=product.id,
            name=product.name,
            price=float(product.price),
            description=product.description,
            category=product.category,
            stock_quantity=product.stock_quantity,
            created_at=product.created_at,
        )
