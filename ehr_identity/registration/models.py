"""
Registration Request Model - tracks a prospective user's path from
self-service request to account creation.
"""
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..auth.models import UserRole
from ..database import Base


class RegistrationStatus(str, enum.Enum):
    """
    Lifecycle status of a registration request.

    - PENDING: Submitted, waiting for email verification and/or an admin decision
    - APPROVED: Approved by an admin, waiting for the applicant to set a password
    - REJECTED: Rejected by an admin (terminal until the applicant re-requests)
    - COMPLETED: The account was created; the request is retired
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class VerificationState(str, enum.Enum):
    """Whether the applicant proved ownership of the email address."""
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"


class RegistrationStage(str, enum.Enum):
    """Combined view of status and verification state, as reported to clients."""
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    AWAITING_COMPLETION = "AWAITING_COMPLETION"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class RegistrationRequest(Base):
    __tablename__ = "registration_requests"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    requested_role = Column(Enum(UserRole), nullable=False)
    status = Column(Enum(RegistrationStatus), nullable=False, default=RegistrationStatus.PENDING, index=True)
    verification_state = Column(Enum(VerificationState), nullable=False, default=VerificationState.UNVERIFIED)
    verification_code = Column(String(6), nullable=True)
    verification_expires = Column(DateTime(timezone=True), nullable=True)
    # Only the SHA-256 digest of the completion token is kept
    completion_token_hash = Column(String(64), nullable=True)
    completion_token_expires = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    approver = relationship("User", foreign_keys=[approved_by])

    @property
    def stage(self) -> RegistrationStage:
        if self.status == RegistrationStatus.PENDING:
            if self.verification_state == VerificationState.VERIFIED:
                return RegistrationStage.AWAITING_APPROVAL
            return RegistrationStage.AWAITING_VERIFICATION
        if self.status == RegistrationStatus.APPROVED:
            return RegistrationStage.AWAITING_COMPLETION
        if self.status == RegistrationStatus.REJECTED:
            return RegistrationStage.REJECTED
        if self.status == RegistrationStatus.COMPLETED:
            return RegistrationStage.COMPLETED
        raise ValueError(f"Unknown registration status: {self.status}")

    @property
    def approver_name(self):
        return self.approver.full_name if self.approver else None

    def __repr__(self):
        return f"<RegistrationRequest(id={self.id}, email='{self.email}', status='{self.status}')>"
