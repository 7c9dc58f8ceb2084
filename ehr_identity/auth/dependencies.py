"""
Authentication gate - FastAPI dependencies that turn a bearer token into a User.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.security import TokenIssuer, get_token_issuer
from .exceptions import InvalidUserException, MissingTokenException
from .models import User
from .store import CredentialStore, get_credential_store

# Set up logging
logger = logging.getLogger(__name__)

# Missing credentials are reported by the gate itself, not by HTTPBearer
bearer_scheme = HTTPBearer(auto_error=False)


def authenticate(store: CredentialStore, issuer: TokenIssuer, token: Optional[str]) -> User:
    """
    Resolve a bearer token to an active user.

    The token's signature and expiry are checked first; the user is then
    re-read from the store so a deactivation takes effect on the next request
    even though the token itself stays valid.

    Args:
        store: Credential store
        issuer: Token issuer used to verify the signature
        token: Raw bearer token, or None when the header was absent

    Returns:
        User: The authenticated user

    Raises:
        MissingTokenException: No token presented
        TokenExpiredException: Token expired
        InvalidTokenException: Token malformed, tampered with or of the wrong type
        InvalidUserException: Token valid but the user is gone or inactive
    """
    if not token:
        raise MissingTokenException()

    claims = issuer.verify_session(token)

    user = store.find_user_by_id(claims.user_id)
    if not user or not user.is_active:
        logger.warning(f"Valid token presented for missing or inactive user {claims.user_id}")
        raise InvalidUserException()
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: CredentialStore = Depends(get_credential_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> User:
    """
    Get current authenticated user from the Authorization header.

    The user is also attached to ``request.state.user`` for middleware and
    audit logging.
    """
    token = credentials.credentials if credentials else None
    user = authenticate(store, issuer, token)
    request.state.user = user
    return user
