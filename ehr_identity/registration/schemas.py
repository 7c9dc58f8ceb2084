"""
Registration Schemas - request and response bodies of the registration workflow.
"""
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from ..auth.models import UserRole
from ..auth.schemas import CamelModel
from .models import RegistrationStage, RegistrationStatus


class RegistrationRequestCreate(CamelModel):
    """
    Step 1 - an applicant asks for an account.

    The role is a plain string here; the workflow rejects anything that is
    not a self-service role with INVALID_ROLE.
    """
    email: EmailStr
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    role: str = Field(..., min_length=1, max_length=50)


class RegistrationVerify(CamelModel):
    """Step 2 - the applicant proves ownership of the email address."""
    email: EmailStr
    verification_code: str = Field(..., min_length=6, max_length=6)


class RegistrationResend(CamelModel):
    email: EmailStr


class RegistrationComplete(CamelModel):
    """Step 4 - the approved applicant sets a password using the emailed token."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    token: str = Field(..., min_length=10)


class RegistrationApprove(CamelModel):
    notes: Optional[str] = Field(None, max_length=2000)


class RegistrationReject(CamelModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class RegistrationStateResponse(CamelModel):
    message: str
    request_id: int
    status: RegistrationStatus
    stage: RegistrationStage


class RegistrationStatusResponse(CamelModel):
    """What an applicant may see about their own request."""
    status: RegistrationStatus
    stage: RegistrationStage
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None


class RegistrationRequestResponse(CamelModel):
    """Administrative view of a registration request."""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    requested_role: UserRole
    status: RegistrationStatus
    stage: RegistrationStage
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approver_name: Optional[str] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None

