"""
Authentication service - login, session refresh and administrator-created accounts.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Request

from ..core.audit_service import record_audit_event
from ..core.security import TokenIssuer, hash_password, verify_password
from .exceptions import (
    AccountDeactivatedException,
    InvalidCredentialsException,
    InvalidRefreshTokenException,
    InvalidTokenException,
    TokenExpiredException,
)
from .models import User, UserRole
from .store import CredentialStore, normalize_email

# Set up logging
logger = logging.getLogger(__name__)


async def login_user(
    store: CredentialStore,
    issuer: TokenIssuer,
    email: str,
    password: str,
    request: Optional[Request] = None,
) -> Dict[str, Any]:
    """
    Authenticate a user and issue a session and refresh token.

    The password is checked before the active flag, so a deactivated account
    is only revealed to someone who knows its password.

    Args:
        store: Credential store
        issuer: Token issuer
        email: User email
        password: Plain text password
        request: FastAPI request object for audit logging

    Returns:
        Dict with the user, session_token, refresh_token and expires_at

    Raises:
        InvalidCredentialsException: Unknown email or wrong password
        AccountDeactivatedException: Correct password, inactive account
    """
    email = normalize_email(email)
    user = store.find_user_by_email(email)

    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Login failed: invalid credentials for {email}")
        record_audit_event(
            store.db,
            action="USER_LOGIN_FAILED",
            user_id=user.id if user else None,
            request=request,
            details={"email": email, "reason": "invalid_credentials"},
        )
        store.commit()
        raise InvalidCredentialsException()

    if not user.is_active:
        logger.warning(f"Login failed: account {user.id} is deactivated")
        record_audit_event(
            store.db,
            action="USER_LOGIN_FAILED",
            user_id=user.id,
            request=request,
            details={"email": email, "reason": "account_deactivated"},
        )
        store.commit()
        raise AccountDeactivatedException()

    store.touch_last_login(user.id)
    record_audit_event(store.db, action="USER_LOGIN_SUCCESS", user_id=user.id, request=request)
    store.commit()
    store.refresh(user)

    session_token, expires_at = issuer.issue_session(user.id, user.email, user.role)
    refresh_token, _ = issuer.issue_refresh(user.id)
    logger.info(f"User {user.id} logged in")
    return {
        "user": user,
        "session_token": session_token,
        "refresh_token": refresh_token,
        "expires_at": expires_at,
    }


async def refresh_session(store: CredentialStore, issuer: TokenIssuer, refresh_token: str) -> Dict[str, Any]:
    """
    Exchange a refresh token for a new session token.

    Returns:
        Dict with session_token and expires_at

    Raises:
        InvalidRefreshTokenException: Token invalid or expired, or the user is gone or inactive
    """
    try:
        user_id = issuer.verify_refresh(refresh_token)
    except (InvalidTokenException, TokenExpiredException):
        raise InvalidRefreshTokenException()

    user = store.find_user_by_id(user_id)
    if not user or not user.is_active:
        logger.warning(f"Refresh refused for missing or inactive user {user_id}")
        raise InvalidRefreshTokenException()

    session_token, expires_at = issuer.issue_session(user.id, user.email, user.role)
    return {"session_token": session_token, "expires_at": expires_at}


async def create_user_by_admin(
    store: CredentialStore,
    admin: User,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole,
    request: Optional[Request] = None,
) -> User:
    """
    Create an active account directly, bypassing the registration workflow.

    This is the only path to the ADMIN role.

    Raises:
        EmailAlreadyExistsException: A user with the email exists
    """
    user = store.create_user(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=UserRole(role),
        is_active=True,
    )
    record_audit_event(
        store.db,
        action="USER_CREATED_BY_ADMIN",
        user_id=admin.id,
        request=request,
        details={"email": user.email, "role": user.role.value},
    )
    store.commit()
    store.refresh(user)
    logger.info(f"Admin {admin.id} created user {user.id} with role {user.role.value}")
    return user
