"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/auth/register   -- self-registration; 201 with the new user
  POST /api/v1/auth/login      -- password login; returns a bearer JWT
  GET  /api/v1/auth/me         -- current user info (requires auth)

Security:
  [C1] IdentityService.authenticate() provides timing equalization -- use it,
       never inline get_by_username() + verify_password().
  [M5] Cache-Control: no-store on login responses, success or failure.
  Wrong username and wrong password produce the same 401 body
  ("bad_credentials"), raised as AuthenticationFailed and rendered by the
  handler in api/main.py.

Handlers are sync def so bcrypt runs on the server's worker thread pool
instead of blocking the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.dependencies import get_current_user
from auth.models import Identity
from auth.service import IdentityService

# Auth policy:
# - POST /api/v1/auth/register: public -- account creation precedes login
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. 409 if the username (or email) is already taken."""
    service: IdentityService = request.app.state.identity_service
    identity = service.register(body.username, body.password, body.email)
    return UserResponse.from_identity(identity)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token."""
    service: IdentityService = request.app.state.identity_service
    identity, token = service.authenticate(body.username, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=service.issuer.expire_seconds,
            username=identity.username,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: Identity = Depends(get_current_user)) -> UserResponse:
    """Return the identity the bearer token belongs to."""
    return UserResponse.from_identity(current_user)
