"""
api/routes/v1/users.py -- User lookup and administration endpoints.

Routes:
  GET   /api/v1/users/{id}        -- own profile, or any profile for admins
  GET   /api/v1/users             -- all users (admin only)
  PATCH /api/v1/users/{id}/block  -- block a user (admin only)

A non-integer {id} fails path validation and becomes a 400 validation_error
via the RequestValidationError handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import BlockResponse, UserResponse
from auth.admin import UserAdminService
from auth.dependencies import get_current_identity, require_admin
from auth.models import Identity

# Auth policy:
# - GET   /api/v1/users/{id}:       bearer token; admin or the user themself
# - GET   /api/v1/users:            bearer token + ADMIN role
# - PATCH /api/v1/users/{id}/block: bearer token + ADMIN role
router = APIRouter()


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    admin: UserAdminService = request.app.state.admin_service
    return UserResponse.from_profile(admin.get_user_by_id(user_id, identity))


@router.get("/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    identity: Identity = Depends(require_admin),
) -> list[UserResponse]:
    """List all user accounts. Admin only; no pagination."""
    admin: UserAdminService = request.app.state.admin_service
    return [UserResponse.from_profile(p) for p in admin.list_users()]


@router.patch("/users/{user_id}/block", response_model=BlockResponse)
def block_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(require_admin),
) -> BlockResponse:
    """Block a user. Admin only.

    Refuses self-block and blocking the last active admin (403).
    """
    admin: UserAdminService = request.app.state.admin_service
    profile = admin.block_user(user_id, identity.user_id)
    return BlockResponse(id=profile.id, status=profile.status)
