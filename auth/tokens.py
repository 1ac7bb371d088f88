"""
auth/tokens.py -- Password hashing and JWT issue/verify.

Security design decisions:
  Passwords: bcrypt, used directly. Bcrypt is the right choice for
       low-entropy secrets (passwords) because its cost factor makes
       brute-force expensive. Every hash carries its own random salt, so two
       users with the same password get different verifiers. The _DUMMY_HASH
       constant enables timing equalization in the authentication workflow so
       response time does not reveal whether a username exists [C1].

  JWT: python-jose with HS256. Tokens carry user_id, username (sub), iat and
       exp. TokenIssuer holds the signing key by reference; it is built once
       per process from Settings and never regenerated. Verification raises
       TokenInvalid with a reason -- the dependency layer turns that into 401.

  Algorithm pinning: decode() is always called with algorithms=[HS256]. A
       token whose header claims "none" or an asymmetric algorithm is rejected
       before any signature logic runs.

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenClaims
from core.config import get_settings
from core.errors import TokenInvalid

logger = logging.getLogger("stockroom.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "user_id", "iat", "exp")

# bcrypt input limit. Counted in UTF-8 bytes, not characters.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    rounds defaults to Settings.bcrypt_rounds. bcrypt only reads 72 bytes of
    input, so a longer password raises ValueError rather than being silently
    truncated. The API layer rejects such passwords with 422 first (see
    api/models.py).
    """
    if not plain:
        raise ValueError("Password must not be empty.")
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8.")
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a malformed or missing verifier is simply a mismatch.
    """
    if not plain or not hashed:
        return False
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("stockroom_timing_dummy")


def verify_dummy(plain: str) -> None:
    """Burn one bcrypt check against a throwaway hash.

    Called when the username does not exist so the response takes as long
    as a wrong-password response would [C1].
    """
    verify_password(plain or "x", _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Issues and verifies HS256 bearer tokens with a fixed lifetime.

    Usage:
        issuer = TokenIssuer(secret_key, expire_seconds=3600)
        token = issuer.issue(user_id=1, username="alice")
        claims = issuer.verify(token)   # raises TokenInvalid
    """

    def __init__(self, secret_key: str, expire_seconds: int) -> None:
        if not secret_key:
            raise ValueError("TokenIssuer requires a signing key.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, username: str, issued_at: datetime | None = None) -> str:
        """Encode a signed JWT for the given identity.

        issued_at defaults to now; tests pass an earlier time to mint tokens
        that are already expired.
        """
        iat = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "user_id": user_id,
            "iat": int(iat.timestamp()),
            "exp": int((iat + timedelta(seconds=self.expire_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str, now: datetime | None = None) -> TokenClaims:
        """Check signature, expiry and claim shape. Raise TokenInvalid on any failure.

        now defaults to the current time. When given, expiry is judged against
        it instead of the clock, the same way issue() accepts issued_at.
        """
        if not token or not isinstance(token, str):
            raise TokenInvalid(TokenInvalid.MALFORMED)
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenInvalid(TokenInvalid.MALFORMED) from exc
        if header.get("alg") != _ALGORITHM:
            raise TokenInvalid(TokenInvalid.SIGNATURE_MISMATCH)

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": now is None},
            )
        except ExpiredSignatureError as exc:
            raise TokenInvalid(TokenInvalid.EXPIRED) from exc
        except JWTError as exc:
            # Header parsed fine, so the remaining failures are signature or
            # payload-encoding problems. Payload problems cannot be told apart
            # from forgery without trusting the payload, so both are reported
            # as a signature mismatch.
            raise TokenInvalid(TokenInvalid.SIGNATURE_MISMATCH) from exc

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            raise TokenInvalid(TokenInvalid.MALFORMED)
        try:
            claims = TokenClaims(
                user_id=int(payload["user_id"]),
                username=str(payload["sub"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (TypeError, ValueError) as exc:
            raise TokenInvalid(TokenInvalid.MALFORMED) from exc
        if now is not None and claims.expires_at < int(now.timestamp()):
            raise TokenInvalid(TokenInvalid.EXPIRED)
        return claims


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Return the process-wide TokenIssuer built from Settings.

    The signing key is read once here and held for the process lifetime.
    Rotating SECRET_KEY therefore requires a restart and invalidates every
    outstanding token.
    """
    settings = get_settings()
    return TokenIssuer(settings.secret_key, settings.token_expire_seconds)
