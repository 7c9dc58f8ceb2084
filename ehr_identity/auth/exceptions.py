"""
Authentication, authorization and registration exceptions.

Messages on the 401/403 paths are fixed strings; they never carry details
about why a credential was refused beyond the stable code.
"""
from typing import Any, Dict, Iterable, Optional

from fastapi import status

from ..exceptions import AppException

BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


class AuthException(AppException):
    """Base class for authentication exceptions."""
    def __init__(self, status_code: int, detail: str, code: str, extra: Optional[Dict[str, Any]] = None):
        headers = BEARER_HEADERS if status_code == status.HTTP_401_UNAUTHORIZED else None
        super().__init__(status_code=status_code, detail=detail, code=code, extra=extra, headers=headers)


# ---------------------------------------------------------------------------
# Registration workflow failures (4xx, safe to explain)
# ---------------------------------------------------------------------------

class EmailAlreadyExistsException(AuthException):
    """Exception raised when a user with the email already exists."""
    def __init__(self, detail: str = "User with this email already exists"):
        super().__init__(status.HTTP_409_CONFLICT, detail, "USER_EXISTS")


class RegistrationPendingException(AuthException):
    """Exception raised when a registration request for the email is already in flight."""
    def __init__(self, request_id: int, request_status: str, stage: str):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Registration request already pending",
            "REQUEST_PENDING",
            extra={"requestId": request_id, "status": request_status, "stage": stage},
        )


class RoleNotAllowedException(AuthException):
    """Exception raised when a self-service registration asks for a restricted role."""
    def __init__(self, detail: str = "Invalid role selected"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "INVALID_ROLE")


class RegistrationNotFoundException(AuthException):
    """Exception raised when no registration request matches."""
    def __init__(self, detail: str = "Registration request not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, "REQUEST_NOT_FOUND")


class UserNotFoundException(AuthException):
    """Exception raised when no user matches."""
    def __init__(self, detail: str = "User not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, "USER_NOT_FOUND")


class InvalidStateException(AuthException):
    """Exception raised when a transition is attempted from the wrong lifecycle state."""
    def __init__(self, detail: str = "Registration request is not pending", code: str = "REQUEST_NOT_PENDING"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, code)


class VerificationCodeInvalidException(AuthException):
    """Exception raised when verification code is invalid."""
    def __init__(self, detail: str = "Invalid verification code"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "INVALID_CODE")


class VerificationCodeExpiredException(AuthException):
    """Exception raised when a verification code is used after its expiry."""
    def __init__(self, detail: str = "Verification code has expired"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "CODE_EXPIRED")


class CompletionTokenInvalidException(AuthException):
    """Exception raised when a completion token is missing, wrong or already used."""
    def __init__(self, detail: str = "Invalid or missing completion token"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "INVALID_COMPLETION_TOKEN")


class CompletionTokenExpiredException(AuthException):
    """Exception raised when a completion token is used after its expiry."""
    def __init__(self, detail: str = "Completion token has expired"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, "COMPLETION_TOKEN_EXPIRED")


# ---------------------------------------------------------------------------
# Authentication gate failures (401)
# ---------------------------------------------------------------------------

class MissingTokenException(AuthException):
    """Exception raised when no bearer token was presented."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Access token required", "MISSING_TOKEN")


class TokenExpiredException(AuthException):
    """Exception raised when token has expired."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Token expired", "TOKEN_EXPIRED")


class InvalidTokenException(AuthException):
    """Exception raised when token is invalid."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid token", "INVALID_TOKEN")


class InvalidUserException(AuthException):
    """Exception raised when a valid token names a user that is gone or inactive."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid or inactive user", "INVALID_USER")


class AuthRequiredException(AuthException):
    """Exception raised when an authorization check runs without an authenticated principal."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Authentication required", "AUTH_REQUIRED")


class InvalidCredentialsException(AuthException):
    """Exception raised when credentials are invalid."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", "INVALID_CREDENTIALS")


class AccountDeactivatedException(AuthException):
    """Exception raised when a deactivated user logs in with the right password."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Account is deactivated", "ACCOUNT_DEACTIVATED")


class InvalidRefreshTokenException(AuthException):
    """Exception raised when a refresh token cannot mint a new session."""
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid refresh token", "INVALID_REFRESH_TOKEN")


# ---------------------------------------------------------------------------
# Authorization gate failures (403)
# ---------------------------------------------------------------------------

class RoleDeniedException(AuthException):
    """Exception raised when user doesn't have required role."""
    def __init__(self, required_roles: Iterable[str], user_role: str):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Insufficient permissions",
            "INSUFFICIENT_PERMISSIONS",
            extra={"required": sorted(required_roles), "current": user_role},
        )
