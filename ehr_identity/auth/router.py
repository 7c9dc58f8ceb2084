"""
Authentication routes: login, session refresh, admin account creation and profile.
"""
import logging

from fastapi import APIRouter, Depends, Request, status

from ..core.audit_service import record_audit_event
from ..core.permissions import require_admin
from ..core.security import TokenIssuer, get_token_issuer
from .dependencies import get_current_user
from .models import User
from .schemas import (
    AdminUserCreate,
    RefreshRequest,
    RefreshResponse,
    SessionResponse,
    UserEnvelope,
    UserLogin,
    UserResponse,
)
from .service import create_user_by_admin, login_user, refresh_session
from .store import CredentialStore, get_credential_store

# Set up logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=SessionResponse)
async def login_route(
    credentials: UserLogin,
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    User login endpoint.

    Returns:
        SessionResponse with session and refresh tokens and the user profile

    Raises:
        InvalidCredentialsException / AccountDeactivatedException (401)
    """
    result = await login_user(store, issuer, credentials.email, credentials.password, request=request)
    user = UserResponse.model_validate(result.pop("user"))
    return SessionResponse(message="Login successful", user=user, **result)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_route(
    body: RefreshRequest,
    store: CredentialStore = Depends(get_credential_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Exchange a refresh token for a new session token."""
    result = await refresh_session(store, issuer, body.refresh_token)
    return RefreshResponse(message="Token refreshed", **result)


@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register_route(
    body: AdminUserCreate,
    request: Request,
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """
    Create an account directly (ADMIN only). Any role may be assigned, including ADMIN.
    """
    user = await create_user_by_admin(
        store,
        admin,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        request=request,
    )
    return UserEnvelope(message="User created successfully", user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def me_route(current_user: User = Depends(get_current_user)):
    """Profile of the authenticated user."""
    return current_user


@router.post("/logout")
async def logout_route(
    request: Request,
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
):
    """
    Record the logout. Tokens are stateless, so the client discards them.
    """
    record_audit_event(store.db, action="USER_LOGOUT", user_id=current_user.id, request=request)
    store.commit()
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Logged out successfully"}
