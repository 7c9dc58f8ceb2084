"""
Auth Schemas - Pydantic models for login, session and user payloads.

JSON bodies use camelCase (``firstName``, ``sessionToken``); Python code uses
snake_case attribute names.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import UserRole


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python, readable from ORM rows."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserResponse(CamelModel):
    """
    User Response Schema - Public view of a user (never includes the password hash)
    """
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserLogin(CamelModel):
    """
    User Login Schema - Used for authentication

    Fields:
    - email: User's email address
    - password: User's plain text password
    """
    email: EmailStr
    password: str = Field(..., min_length=6)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class AdminUserCreate(CamelModel):
    """
    Direct account creation by an administrator. This is the only way to
    obtain the ADMIN role.
    """
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    role: UserRole


class SessionResponse(CamelModel):
    """Returned by login and registration completion."""
    message: str
    session_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class RefreshResponse(CamelModel):
    message: str
    session_token: str
    token_type: str = "bearer"
    expires_at: datetime


class UserEnvelope(CamelModel):
    message: str
    user: UserResponse
