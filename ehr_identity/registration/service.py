"""
Registration workflow - drives a RegistrationRequest through its lifecycle.

    request ─► PENDING/UNVERIFIED ─verify─► PENDING/VERIFIED ─approve─► APPROVED ─complete─► COMPLETED
                      │                            │
                      └──────────── reject ────────┴─► REJECTED

Every transition is one conditional UPDATE committed before any notification
is dispatched. Losing a race against a concurrent transition surfaces as the
same error the loser would have seen had it arrived second.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode

from fastapi import BackgroundTasks, Request

from ..auth.exceptions import (
    CompletionTokenExpiredException,
    CompletionTokenInvalidException,
    EmailAlreadyExistsException,
    InvalidStateException,
    RegistrationNotFoundException,
    RegistrationPendingException,
    RoleNotAllowedException,
    VerificationCodeExpiredException,
    VerificationCodeInvalidException,
)
from ..auth.models import SELF_SERVICE_ROLES, User, UserRole
from ..auth.store import CredentialStore, normalize_email
from ..config import settings
from ..core.audit_service import record_audit_event
from ..core.security import (
    TokenIssuer,
    codes_match,
    expiry_after,
    generate_completion_token,
    generate_verification_code,
    hash_password,
    hash_token,
    is_expired,
    utcnow,
    verify_token_hash,
)
from ..notifications import Notifier, dispatch
from .models import RegistrationRequest, RegistrationStatus, VerificationState

# Set up logging
logger = logging.getLogger(__name__)

# A request in one of these states blocks a new request for the same email
IN_FLIGHT_STATUSES = frozenset({RegistrationStatus.PENDING, RegistrationStatus.APPROVED})


def _not_pending() -> InvalidStateException:
    return InvalidStateException("Registration request is not pending", "REQUEST_NOT_PENDING")


def _get_request_or_404(store: CredentialStore, request_id: int) -> RegistrationRequest:
    registration = store.find_request_by_id(request_id)
    if not registration:
        raise RegistrationNotFoundException()
    return registration


def _get_request_by_email_or_404(store: CredentialStore, email: str) -> RegistrationRequest:
    registration = store.find_request_by_email(email)
    if not registration:
        raise RegistrationNotFoundException()
    return registration


def _pending_conflict(registration: RegistrationRequest) -> RegistrationPendingException:
    return RegistrationPendingException(registration.id, registration.status.value, registration.stage.value)


def build_completion_url(email: str, token: str) -> str:
    query = urlencode({"email": email, "token": token})
    return f"{settings.frontend_url.rstrip('/')}/complete-registration?{query}"


async def request_registration(
    store: CredentialStore,
    notifier: Notifier,
    email: str,
    first_name: str,
    last_name: str,
    role: Union[UserRole, str],
    background_tasks: Optional[BackgroundTasks] = None,
    request: Optional[Request] = None,
) -> RegistrationRequest:
    """
    Submit (or re-submit after a rejection) a self-service registration request.

    Args:
        store: Credential store bound to the current transaction
        notifier: Where the verification code is sent
        email: Applicant email, compared case-insensitively
        first_name / last_name: Applicant name, copied to the user on completion
        role: Requested role; must be one of SELF_SERVICE_ROLES
        background_tasks: Runs the notification after the response when given
        request: FastAPI request object for audit logging

    Returns:
        RegistrationRequest: The PENDING request

    Raises:
        RoleNotAllowedException: If the role cannot be self-served (e.g. ADMIN)
        EmailAlreadyExistsException: If a user with this email exists
        RegistrationPendingException: If a request for the email is already in flight
    """
    try:
        role = UserRole(role)
    except ValueError:
        raise RoleNotAllowedException()
    if role not in SELF_SERVICE_ROLES:
        logger.warning(f"Self-service registration for restricted role {role.value} refused")
        raise RoleNotAllowedException()

    email = normalize_email(email)
    logger.info(f"Registration request for {email} as {role.value}")

    if store.find_user_by_email(email):
        logger.warning(f"Registration request refused: {email} is already a user")
        raise EmailAlreadyExistsException()

    existing = store.find_request_by_email(email)
    if existing and existing.status in IN_FLIGHT_STATUSES:
        logger.info(f"Registration request for {email} already in flight (id {existing.id})")
        raise _pending_conflict(existing)

    code = generate_verification_code()
    code_expires = expiry_after(settings.verification_code_expire_hours)
    values = {
        "first_name": first_name,
        "last_name": last_name,
        "requested_role": role,
        "status": RegistrationStatus.PENDING,
        "verification_state": VerificationState.UNVERIFIED,
        "verification_code": code,
        "verification_expires": code_expires,
        "completion_token_hash": None,
        "completion_token_expires": None,
        "approved_by": None,
        "approved_at": None,
        "admin_notes": None,
        "rejection_reason": None,
        "completed_at": None,
        "requested_at": utcnow(),
    }
    registration = store.upsert_request(email, values, expected_status=existing.status if existing else None)
    if registration is None:
        # A concurrent request for the same email won
        store.rollback()
        current = store.find_request_by_email(email)
        if current is not None and current.status in IN_FLIGHT_STATUSES:
            raise _pending_conflict(current)
        raise _not_pending()

    record_audit_event(
        store.db,
        action="REGISTRATION_REQUESTED",
        request=request,
        details={"email": email, "role": role.value, "request_id": registration.id},
    )
    store.commit()
    logger.info(f"Registration request {registration.id} for {email} is pending verification")

    await dispatch(background_tasks, notifier.send_verification_code, email, first_name, code, code_expires)
    return registration


async def verify_email(
    store: CredentialStore,
    email: str,
    verification_code: str,
    request: Optional[Request] = None,
) -> RegistrationRequest:
    """
    Confirm the applicant received the verification code.

    On success the code is cleared and the request waits for an administrator;
    the status stays PENDING.

    Raises:
        RegistrationNotFoundException: No request for the email
        InvalidStateException: Request not pending or already verified
        VerificationCodeInvalidException: Code does not match
        VerificationCodeExpiredException: Code matched but expired
    """
    registration = _get_request_by_email_or_404(store, email)

    if registration.status != RegistrationStatus.PENDING:
        raise _not_pending()
    if registration.verification_state == VerificationState.VERIFIED:
        raise InvalidStateException("Email already verified", "ALREADY_VERIFIED")
    if not codes_match(verification_code, registration.verification_code):
        logger.warning(f"Verification failed: invalid code for {registration.email}")
        raise VerificationCodeInvalidException()
    if is_expired(registration.verification_expires):
        logger.warning(f"Verification failed: expired code for {registration.email}")
        raise VerificationCodeExpiredException()

    verified = store.update_request_status(
        registration.id,
        RegistrationStatus.PENDING,
        {
            "verification_state": VerificationState.VERIFIED,
            "verification_code": None,
            "verification_expires": None,
        },
        verification_state=VerificationState.UNVERIFIED,
        verification_code=registration.verification_code,
    )
    if not verified:
        store.rollback()
        raise InvalidStateException("Email already verified", "ALREADY_VERIFIED")

    record_audit_event(
        store.db,
        action="REGISTRATION_EMAIL_VERIFIED",
        request=request,
        details={"email": registration.email, "request_id": registration.id},
    )
    store.commit()
    store.refresh(registration)
    logger.info(f"Email verified for registration request {registration.id}; awaiting admin approval")
    return registration


async def resend_verification(
    store: CredentialStore,
    notifier: Notifier,
    email: str,
    background_tasks: Optional[BackgroundTasks] = None,
    request: Optional[Request] = None,
) -> RegistrationRequest:
    """
    Rotate the verification code of an unverified pending request and send it again.

    Raises:
        RegistrationNotFoundException: No request for the email
        InvalidStateException: Request not pending or already verified
    """
    registration = _get_request_by_email_or_404(store, email)
    if registration.status != RegistrationStatus.PENDING:
        raise _not_pending()
    if registration.verification_state == VerificationState.VERIFIED:
        raise InvalidStateException("Email already verified", "ALREADY_VERIFIED")

    code = generate_verification_code()
    code_expires = expiry_after(settings.verification_code_expire_hours)
    rotated = store.update_request_status(
        registration.id,
        RegistrationStatus.PENDING,
        {"verification_code": code, "verification_expires": code_expires},
        verification_state=VerificationState.UNVERIFIED,
    )
    if not rotated:
        store.rollback()
        raise InvalidStateException("Email already verified", "ALREADY_VERIFIED")

    record_audit_event(
        store.db,
        action="REGISTRATION_VERIFICATION_RESENT",
        request=request,
        details={"email": registration.email, "request_id": registration.id},
    )
    store.commit()
    store.refresh(registration)
    logger.info(f"Verification code rotated for registration request {registration.id}")

    await dispatch(
        background_tasks, notifier.send_verification_code, registration.email, registration.first_name, code, code_expires
    )
    return registration


async def approve_registration(
    store: CredentialStore,
    notifier: Notifier,
    request_id: int,
    admin: User,
    notes: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
    request: Optional[Request] = None,
) -> RegistrationRequest:
    """
    Approve a pending request and email the applicant a single-use completion link.

    Raises:
        RegistrationNotFoundException: Unknown request id
        InvalidStateException: Request is not PENDING (including a lost race)
    """
    registration = _get_request_or_404(store, request_id)
    if registration.status != RegistrationStatus.PENDING:
        raise _not_pending()

    completion_token = generate_completion_token()
    token_expires = expiry_after(settings.completion_token_expire_hours)
    approved = store.update_request_status(
        registration.id,
        RegistrationStatus.PENDING,
        {
            "status": RegistrationStatus.APPROVED,
            "approved_by": admin.id,
            "approved_at": utcnow(),
            "admin_notes": notes,
            "completion_token_hash": hash_token(completion_token),
            "completion_token_expires": token_expires,
        },
    )
    if not approved:
        store.rollback()
        raise _not_pending()

    record_audit_event(
        store.db,
        action="REGISTRATION_APPROVED",
        user_id=admin.id,
        request=request,
        details={"email": registration.email, "request_id": registration.id},
    )
    store.commit()
    store.refresh(registration)
    logger.info(f"Registration request {registration.id} approved by admin {admin.id}")

    await dispatch(
        background_tasks,
        notifier.send_registration_approved,
        registration.email,
        registration.first_name,
        admin.full_name,
        build_completion_url(registration.email, completion_token),
        token_expires,
    )
    return registration


async def reject_registration(
    store: CredentialStore,
    notifier: Notifier,
    request_id: int,
    admin: User,
    reason: str,
    notes: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
    request: Optional[Request] = None,
) -> RegistrationRequest:
    """
    Reject a pending request.

    Raises:
        RegistrationNotFoundException: Unknown request id
        InvalidStateException: Request is not PENDING (including a lost race)
    """
    registration = _get_request_or_404(store, request_id)
    if registration.status != RegistrationStatus.PENDING:
        raise _not_pending()

    rejected = store.update_request_status(
        registration.id,
        RegistrationStatus.PENDING,
        {
            "status": RegistrationStatus.REJECTED,
            "approved_by": admin.id,
            "approved_at": utcnow(),
            "rejection_reason": reason,
            "admin_notes": notes or reason,
            "verification_code": None,
            "verification_expires": None,
        },
    )
    if not rejected:
        store.rollback()
        raise _not_pending()

    record_audit_event(
        store.db,
        action="REGISTRATION_REJECTED",
        user_id=admin.id,
        request=request,
        details={"email": registration.email, "request_id": registration.id, "reason": reason},
    )
    store.commit()
    store.refresh(registration)
    logger.info(f"Registration request {registration.id} rejected by admin {admin.id}")

    await dispatch(
        background_tasks,
        notifier.send_registration_rejected,
        registration.email,
        registration.first_name,
        admin.full_name,
        reason,
    )
    return registration


async def complete_registration(
    store: CredentialStore,
    issuer: TokenIssuer,
    email: str,
    password: str,
    completion_token: str,
    request: Optional[Request] = None,
) -> Dict[str, Any]:
    """
    Create the account of an approved applicant.

    The user row, the consumed token and the COMPLETED status are committed
    together; a failure at any point leaves the request APPROVED.

    Returns:
        Dict with the new user, a session token and a refresh token

    Raises:
        RegistrationNotFoundException: No request for the email
        CompletionTokenInvalidException: Token missing, wrong or already used
        InvalidStateException: Request is not APPROVED
        CompletionTokenExpiredException: Token matched but expired
        EmailAlreadyExistsException: A user with the email exists
    """
    registration = _get_request_by_email_or_404(store, email)

    if registration.status == RegistrationStatus.COMPLETED:
        logger.warning(f"Replay of consumed completion token for {registration.email}")
        raise CompletionTokenInvalidException()
    if registration.status != RegistrationStatus.APPROVED:
        raise InvalidStateException("Registration request is not approved", "REQUEST_NOT_APPROVED")
    if not verify_token_hash(completion_token, registration.completion_token_hash):
        logger.warning(f"Completion failed: invalid token for {registration.email}")
        raise CompletionTokenInvalidException()
    if is_expired(registration.completion_token_expires):
        logger.warning(f"Completion failed: expired token for {registration.email}")
        raise CompletionTokenExpiredException()
    if store.find_user_by_email(registration.email):
        raise EmailAlreadyExistsException()

    consumed = store.update_request_status(
        registration.id,
        RegistrationStatus.APPROVED,
        {
            "status": RegistrationStatus.COMPLETED,
            "completion_token_hash": None,
            "completion_token_expires": None,
            "completed_at": utcnow(),
        },
        completion_token_hash=registration.completion_token_hash,
    )
    if not consumed:
        store.rollback()
        raise CompletionTokenInvalidException()

    user = store.create_user(
        email=registration.email,
        password_hash=hash_password(password),
        first_name=registration.first_name,
        last_name=registration.last_name,
        role=registration.requested_role,
        is_active=True,
    )
    record_audit_event(
        store.db,
        action="REGISTRATION_COMPLETED",
        user_id=user.id,
        request=request,
        details={"email": user.email, "request_id": registration.id, "role": user.role.value},
    )
    store.commit()
    logger.info(f"Registration request {registration.id} completed; user {user.id} created")

    session_token, expires_at = issuer.issue_session(user.id, user.email, user.role)
    refresh_token, _ = issuer.issue_refresh(user.id)
    return {
        "user": user,
        "session_token": session_token,
        "refresh_token": refresh_token,
        "expires_at": expires_at,
    }


def get_registration_status(store: CredentialStore, email: str) -> RegistrationRequest:
    """
    Raises:
        RegistrationNotFoundException: No request for the email
    """
    return _get_request_by_email_or_404(store, email)


def list_registration_requests(
    store: CredentialStore,
    status: Optional[RegistrationStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[RegistrationRequest], int]:
    """Newest requests first, optionally filtered by status."""
    return store.list_requests(status=status, page=page, limit=limit)
