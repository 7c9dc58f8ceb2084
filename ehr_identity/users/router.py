"""
User administration routes.
"""
from fastapi import APIRouter, Depends, Request

from ..auth.dependencies import get_current_user
from ..auth.models import User
from ..auth.schemas import UserResponse
from ..auth.store import CredentialStore, get_credential_store
from ..core.permissions import require_admin
from .schemas import (
    AdminUserListResponse,
    StaffDirectoryEntry,
    StaffDirectoryResponse,
    UserRoleUpdate,
    UserStatusUpdate,
    UserUpdateResponse,
)
from .service import list_all_users, list_staff_directory, set_user_active, set_user_role

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=StaffDirectoryResponse)
async def staff_directory_route(
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
):
    """Staff directory available to any authenticated user."""
    users = list_staff_directory(store)
    return StaffDirectoryResponse(users=[StaffDirectoryEntry.model_validate(user) for user in users])


@router.get("/admin", response_model=AdminUserListResponse)
async def admin_users_route(
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """All accounts with status and last login (ADMIN only)."""
    return AdminUserListResponse(users=[UserResponse.model_validate(user) for user in list_all_users(store)])


@router.patch("/{user_id}/status", response_model=UserUpdateResponse)
async def update_user_status_route(
    user_id: int,
    body: UserStatusUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """Activate or deactivate an account (ADMIN only)."""
    user = set_user_active(store, admin, user_id, body.is_active, request=request)
    action = "activated" if body.is_active else "deactivated"
    return UserUpdateResponse(
        message=f"User {action} successfully",
        user=UserResponse.model_validate(user),
        updated_at=user.updated_at,
    )


@router.patch("/{user_id}/role", response_model=UserUpdateResponse)
async def update_user_role_route(
    user_id: int,
    body: UserRoleUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """Change an account's role (ADMIN only)."""
    user = set_user_role(store, admin, user_id, body.role, request=request)
    return UserUpdateResponse(
        message="User role updated successfully",
        user=UserResponse.model_validate(user),
        updated_at=user.updated_at,
    )
