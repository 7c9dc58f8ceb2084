"""
User administration schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr

from ..auth.models import UserRole
from ..auth.schemas import CamelModel, UserResponse


class StaffDirectoryEntry(CamelModel):
    """Minimal profile shown to any signed-in user when picking a colleague."""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole


class StaffDirectoryResponse(CamelModel):
    users: List[StaffDirectoryEntry]


class AdminUserListResponse(CamelModel):
    users: List[UserResponse]


class UserStatusUpdate(CamelModel):
    is_active: bool


class UserRoleUpdate(CamelModel):
    role: UserRole


class UserUpdateResponse(CamelModel):
    message: str
    user: UserResponse
    updated_at: Optional[datetime] = None
