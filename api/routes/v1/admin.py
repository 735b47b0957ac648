"""
api/routes/v1/admin.py -- Role and user administration endpoints.

Routes:
  POST   /api/v1/admin/roles                              -- create role
  GET    /api/v1/admin/roles                              -- list roles
  POST   /api/v1/admin/roles/{role_name}/members          -- add user (by email) to role
  DELETE /api/v1/admin/roles/{role_name}/members/{user_id} -- remove user from role
  PATCH  /api/v1/admin/users/{user_id}                    -- enable / soft-disable user

Every route requires the admin role (require_admin). The check runs against
the caller's session snapshot; role changes made here reach the affected
user's session at their next login.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import RoleCreate, RoleMemberAdd, RoleMemberResponse, RoleResponse, UserPatch, UserResponse
from auth.dependencies import require_admin
from auth.errors import ValidationError
from auth.models import Session
from auth.roles import RoleManager

router = APIRouter()


def _roles(request: Request) -> RoleManager:
    return request.app.state.role_manager


@router.post("/admin/roles", response_model=RoleResponse, status_code=201)
def create_role(
    request: Request,
    body: RoleCreate,
    session: Session = Depends(require_admin),
) -> RoleResponse:
    """Create a role. 409 duplicate_role if the name exists (case-insensitive)."""
    return RoleResponse.from_role(_roles(request).create_role(body.role_name))


@router.get("/admin/roles", response_model=list[RoleResponse])
def list_roles(request: Request, session: Session = Depends(require_admin)) -> list[RoleResponse]:
    return [RoleResponse.from_role(r) for r in _roles(request).list_roles()]


@router.post("/admin/roles/{role_name}/members", response_model=RoleMemberResponse, status_code=201)
def add_role_member(
    request: Request,
    role_name: str,
    body: RoleMemberAdd,
    session: Session = Depends(require_admin),
) -> RoleMemberResponse:
    """Assign a role. 404 if user or role is unknown, 409 already_assigned on repeats."""
    user, role = _roles(request).assign(body.email, role_name)
    return RoleMemberResponse(user_id=user.id, email=user.email, role=role.name)


@router.delete("/admin/roles/{role_name}/members/{user_id}", status_code=204)
def remove_role_member(
    request: Request,
    role_name: str,
    user_id: str,
    session: Session = Depends(require_admin),
) -> Response:
    _roles(request).unassign(user_id, role_name)
    return Response(status_code=204)


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    session: Session = Depends(require_admin),
) -> UserResponse:
    """Enable or soft-disable a user. Users are never deleted.

    Blocks self-deactivation so an admin cannot lock themselves out.
    """
    if not body.is_active and user_id == session.user_id:
        raise ValidationError({"is_active": ["You cannot deactivate your own account."]})
    return UserResponse.from_user(_roles(request).set_active(user_id, body.is_active))
