"""
api/routes/v1/users.py -- User management routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /users                          -- create user (checks username and email)
  GET    /users                          -- list all users
  GET    /users/check-username?username= -- is the username taken
  GET    /users/check-email?email=       -- is the email taken
  GET    /users/by-username/{username}   -- lookup by username
  GET    /users/{user_id}                -- lookup by id
  PATCH  /users/{user_id}                -- partial update
  DELETE /users/{user_id}                -- delete (unconditional)

Every route requires a bearer token. There are no roles: any authenticated
caller may manage any user.
"""

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import ExistsResponse, UserCreate, UserPatch, UserResponse
from auth.dependencies import get_current_user
from auth.service import IdentityService

# Router-level dependency applies to every route registered on this router,
# so individual handlers don't each need to repeat Depends(get_current_user).
router = APIRouter(dependencies=[Depends(get_current_user)])


def _service(request: Request) -> IdentityService:
    return request.app.state.identity_service


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    identity = _service(request).create_identity(body.username, body.password, body.email)
    return UserResponse.from_identity(identity)


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    return [UserResponse.from_identity(i) for i in _service(request).list_identities()]


@router.get("/users/check-username", response_model=ExistsResponse)
def check_username(request: Request, username: str = Query(min_length=1, max_length=255)) -> ExistsResponse:
    return ExistsResponse(exists=_service(request).username_exists(username))


@router.get("/users/check-email", response_model=ExistsResponse)
def check_email(request: Request, email: str = Query(min_length=1, max_length=255)) -> ExistsResponse:
    return ExistsResponse(exists=_service(request).email_exists(email))


@router.get("/users/by-username/{username}", response_model=UserResponse)
def get_user_by_username(request: Request, username: str) -> UserResponse:
    return UserResponse.from_identity(_service(request).get_identity_by_username(username))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int) -> UserResponse:
    return UserResponse.from_identity(_service(request).get_identity(user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(request: Request, user_id: int, body: UserPatch) -> UserResponse:
    """Apply only the fields present in the body.

    exclude_unset distinguishes "email": null (clear it) from a body that
    does not mention email at all (keep it).
    """
    changes = body.model_dump(exclude_unset=True)
    if changes.get("username") is None:
        changes.pop("username", None)
    identity = _service(request).update_identity(user_id, **changes)
    return UserResponse.from_identity(identity)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: int) -> Response:
    _service(request).delete_identity(user_id)
    return Response(status_code=204)
