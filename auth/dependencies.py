"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Callers authenticate with an Authorization: Bearer <token> header carrying a
JWT issued by POST /api/v1/auth/login. There is no cookie session, no API key
and no role check: any valid token for an existing identity is enough.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from catalog/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Identity
from core.errors import TokenInvalid

logger = logging.getLogger("stockroom.auth")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_get_current_user(request: Request) -> Identity | None:
    """Attempt to authenticate the request via its Bearer token.

    Returns the Identity on success, None on any failure. Never raises.
    A token for an identity that has since been deleted is treated as
    invalid: tokens are stateless, so the lookup is the only revocation.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        claims = request.app.state.token_issuer.verify(token)
    except TokenInvalid as exc:
        logger.debug("Rejected bearer token: %s", exc.reason)
        return None
    return request.app.state.identity_service.store.get_by_id(claims.user_id)


def get_current_user(request: Request) -> Identity:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: Identity = Depends(get_current_user)): ...
    """
    identity = try_get_current_user(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
