"""
Registration routes - public self-service steps and the administrator review queue.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from ..auth.models import User
from ..auth.schemas import SessionResponse, UserResponse
from ..auth.store import CredentialStore, get_credential_store
from ..core.pagination import PageParams, PageResponse, build_page
from ..core.permissions import require_admin
from ..core.security import TokenIssuer, get_token_issuer
from ..notifications import Notifier, get_notifier
from .models import RegistrationStatus
from .schemas import (
    RegistrationApprove,
    RegistrationComplete,
    RegistrationReject,
    RegistrationRequestCreate,
    RegistrationRequestResponse,
    RegistrationResend,
    RegistrationStateResponse,
    RegistrationStatusResponse,
    RegistrationVerify,
)
from .service import (
    approve_registration,
    complete_registration,
    get_registration_status,
    list_registration_requests,
    reject_registration,
    request_registration,
    resend_verification,
    verify_email,
)

# Set up logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/registration", tags=["Registration"])


def _state(message: str, registration) -> RegistrationStateResponse:
    return RegistrationStateResponse(
        message=message,
        request_id=registration.id,
        status=registration.status,
        stage=registration.stage,
    )


# ============================================================================
# APPLICANT ROUTES
# ============================================================================

@router.post("/request", response_model=RegistrationStateResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_registration_route(
    body: RegistrationRequestCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    store: CredentialStore = Depends(get_credential_store),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Submit a registration request. A verification code is emailed to the applicant.

    Raises:
        RoleNotAllowedException (400), EmailAlreadyExistsException (409),
        RegistrationPendingException (409)
    """
    registration = await request_registration(
        store,
        notifier,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        background_tasks=background_tasks,
        request=request,
    )
    return _state("Registration request submitted. Check your email for a verification code.", registration)


@router.post("/verify", response_model=RegistrationStateResponse)
async def verify_email_route(
    body: RegistrationVerify,
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
):
    """Confirm the emailed verification code."""
    registration = await verify_email(store, body.email, body.verification_code, request=request)
    return _state("Email verified. Your request is awaiting administrator approval.", registration)


@router.post("/resend-verification", response_model=RegistrationStateResponse)
async def resend_verification_route(
    body: RegistrationResend,
    request: Request,
    background_tasks: BackgroundTasks,
    store: CredentialStore = Depends(get_credential_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Send a fresh verification code to an unverified applicant."""
    registration = await resend_verification(
        store, notifier, body.email, background_tasks=background_tasks, request=request
    )
    return _state("A new verification code has been sent.", registration)


@router.post("/complete", response_model=SessionResponse)
async def complete_registration_route(
    body: RegistrationComplete,
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Set a password with the completion token from the approval email.
    The new user is signed in immediately.
    """
    result = await complete_registration(
        store, issuer, email=body.email, password=body.password, completion_token=body.token, request=request
    )
    user = UserResponse.model_validate(result.pop("user"))
    return SessionResponse(message="Registration completed successfully", user=user, **result)


@router.get("/status/{email}", response_model=RegistrationStatusResponse)
async def registration_status_route(email: str, store: CredentialStore = Depends(get_credential_store)):
    """Applicant-facing status of a registration request."""
    registration = get_registration_status(store, email)
    return RegistrationStatusResponse(
        status=registration.status,
        stage=registration.stage,
        requested_at=registration.requested_at,
        approved_at=registration.approved_at,
        notes=registration.admin_notes,
    )


# ============================================================================
# ADMIN ROUTES
# ============================================================================

@router.get("/admin/requests", response_model=PageResponse[RegistrationRequestResponse])
async def list_requests_route(
    status_filter: Optional[RegistrationStatus] = Query(None, alias="status"),
    page_params: PageParams = Depends(),
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
):
    """Registration requests, newest first (ADMIN only)."""
    items, total = list_registration_requests(
        store, status=status_filter, page=page_params.page, limit=page_params.limit
    )
    return build_page([RegistrationRequestResponse.model_validate(item) for item in items], total, page_params)


@router.post("/admin/approve/{request_id}", response_model=RegistrationRequestResponse)
async def approve_request_route(
    request_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[RegistrationApprove] = None,
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Approve a pending request; the applicant is emailed a completion link."""
    registration = await approve_registration(
        store,
        notifier,
        request_id,
        admin,
        notes=body.notes if body else None,
        background_tasks=background_tasks,
        request=request,
    )
    return registration


@router.post("/admin/reject/{request_id}", response_model=RegistrationRequestResponse)
async def reject_request_route(
    request_id: int,
    body: RegistrationReject,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    store: CredentialStore = Depends(get_credential_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Reject a pending request with a reason."""
    registration = await reject_registration(
        store,
        notifier,
        request_id,
        admin,
        reason=body.reason,
        notes=body.notes,
        background_tasks=background_tasks,
        request=request,
    )
    return registration
